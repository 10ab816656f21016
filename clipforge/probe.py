"""
clipforge.probe - Source media metadata via ffprobe.

Supplies the true source duration that trim validation and the trim
decision compare against.
"""

from __future__ import annotations

import json
import math
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from clipforge.exceptions import ProbeError
from clipforge.models import Clip


def read_format(path: Path, ffprobe: str = "ffprobe") -> dict[str, Any]:
    """Run ffprobe and return the container section of its JSON report.

    Raises:
        ProbeError: If ffprobe cannot run, fails, or prints invalid JSON
    """
    cmd = [
        ffprobe,
        "-v",
        "quiet",
        "-print_format",
        "json",
        "-show_format",
        str(path),
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        raise ProbeError(f"Failed to execute {ffprobe}: {e}") from e
    if result.returncode != 0:
        raise ProbeError(f"ffprobe failed for {path}: {result.stderr}")

    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise ProbeError(f"ffprobe returned invalid JSON for {path}: {e}") from e
    return data.get("format") or {}


def probe_duration(path: Path, ffprobe: str = "ffprobe") -> float:
    """Return the container duration of a media file in seconds.

    Raises:
        ProbeError: If ffprobe fails or reports no duration
    """
    try:
        duration = float(read_format(path, ffprobe).get("duration") or 0)
    except (TypeError, ValueError) as e:
        raise ProbeError(f"ffprobe reported an unreadable duration for {path}: {e}") from e
    if not math.isfinite(duration) or duration <= 0:
        raise ProbeError(f"ffprobe reported no duration for {path}")
    return duration


def attach_source_durations(clips: Sequence[Clip], ffprobe: str = "ffprobe") -> list[Clip]:
    """Fill in source_duration for clips that lack one, probing each file once."""
    cache: dict[str, float] = {}
    result = []
    for clip in clips:
        if clip.source_duration is not None:
            result.append(clip)
            continue
        if clip.file_path not in cache:
            cache[clip.file_path] = probe_duration(Path(clip.file_path), ffprobe)
        result.append(clip.model_copy(update={"source_duration": cache[clip.file_path]}))
    return result
