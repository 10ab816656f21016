"""
clipforge.timeline - Timeline document loading.

A timeline document is YAML or JSON:

    output_dir: exports
    filename: final-cut
    settings: {resolution: 1080p, quality: high}
    clips:
      - {file_path: a.mp4, start_time: 0, duration: 10, trim_start: 0, trim_end: 10, track_id: t1}

Relative paths resolve against the document's directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pydantic
import yaml
from pydantic import BaseModel, Field

from clipforge.exceptions import ValidationError
from clipforge.io import read_document
from clipforge.models import Clip


class Timeline(BaseModel):
    """A loaded timeline document."""

    clips: list[Clip] = Field(default_factory=list)
    output_dir: Path | None = None
    filename: str | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
    source_path: Path | None = None

    @property
    def total_duration(self) -> float:
        return sum(clip.duration for clip in self.clips)


def _resolve(base: Path, value: str | Path) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else (base / path).resolve()


def load_timeline(path: Path) -> Timeline:
    """Load a timeline document.

    Raises:
        FileNotFoundError: If the document doesn't exist
        ValidationError: If it cannot be parsed into a timeline
    """
    if not path.exists():
        raise FileNotFoundError(f"Timeline not found: {path}")

    try:
        raw = read_document(path)
    except (ValueError, yaml.YAMLError) as e:
        raise ValidationError(f"Cannot parse timeline {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ValidationError(f"Timeline {path} must contain a mapping")

    base = path.parent.resolve()
    clips = []
    for clip in raw.get("clips") or []:
        if isinstance(clip, dict) and clip.get("file_path"):
            clip = {**clip, "file_path": str(_resolve(base, clip["file_path"]))}
        clips.append(clip)
    raw["clips"] = clips
    if raw.get("output_dir"):
        raw["output_dir"] = _resolve(base, raw["output_dir"])
    raw["source_path"] = path

    try:
        return Timeline.model_validate(raw)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid timeline {path}: {e}") from e

