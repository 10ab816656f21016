"""
clipforge.validation - Timeline, settings and environment validation.

Everything here runs before the first FFmpeg process or scratch file of an
export attempt exists, so a rejected request leaves nothing behind.
"""

from __future__ import annotations

import math
import shutil
import subprocess
from collections import defaultdict
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import pydantic

from clipforge.exceptions import DependencyError, ValidationError
from clipforge.models import Clip, ExportSettings

MIN_TRIM_DURATION = 0.1
NUMERIC_FIELDS = ("start_time", "duration", "trim_start", "trim_end", "source_duration")


def _describe(index: int, clip: Clip) -> str:
    return f"Clip {index + 1} ({Path(clip.file_path).name or '<no file>'})"


def validate_timeline(clips: Sequence[Clip], min_trim_duration: float = MIN_TRIM_DURATION) -> None:
    """Check clip geometry and per-track ordering.

    Checks run in order: non-empty collection, placement, trim window,
    then per-track chronology. Overlap across different tracks is not
    checked; the export linearizes tracks.

    Args:
        clips: Timeline clips in request order
        min_trim_duration: Shortest allowed trim window in seconds

    Raises:
        ValidationError: Naming the first offending clip and rule
    """
    if not clips:
        raise ValidationError("No clips to export")

    for index, clip in enumerate(clips):
        label = _describe(index, clip)
        if not clip.file_path:
            raise ValidationError(f"Clip {index + 1} has empty file path")
        for field in NUMERIC_FIELDS:
            value = getattr(clip, field)
            if value is not None and not math.isfinite(value):
                raise ValidationError(f"{label} has non-finite {field}: {value}")
        if clip.start_time < 0:
            raise ValidationError(f"{label} has negative start time: {clip.start_time}")
        if clip.duration <= 0:
            raise ValidationError(f"{label} has invalid duration: {clip.duration}")
        if not clip.track_id or not clip.track_id.strip():
            raise ValidationError(f"{label} has empty track id")

    for index, clip in enumerate(clips):
        label = _describe(index, clip)
        if clip.trim_start < 0:
            raise ValidationError(f"{label} has negative trim start: {clip.trim_start}")
        if clip.trim_end <= clip.trim_start:
            raise ValidationError(
                f"{label} has invalid trim range: {clip.trim_start} to {clip.trim_end}"
            )
        if clip.trim_end - clip.trim_start < min_trim_duration:
            raise ValidationError(
                f"{label} trim window is shorter than {min_trim_duration}s: "
                f"{clip.trim_end - clip.trim_start:.3f}s"
            )
        source_duration = clip.effective_source_duration
        if clip.trim_end > source_duration:
            raise ValidationError(
                f"{label} trim end {clip.trim_end} exceeds source duration {source_duration}"
            )

    tracks: dict[str, list[tuple[int, Clip]]] = defaultdict(list)
    for index, clip in enumerate(clips):
        tracks[clip.track_id].append((index, clip))

    for track_id, members in tracks.items():
        members.sort(key=lambda item: item[1].start_time)
        for (_, prev), (next_index, nxt) in zip(members, members[1:]):
            if nxt.start_time < prev.end_time:
                raise ValidationError(
                    f"{_describe(next_index, nxt)} overlaps the previous clip on track "
                    f"'{track_id}': starts at {nxt.start_time}s before {prev.end_time}s"
                )


def validate_export_settings(settings: ExportSettings | Mapping[str, Any]) -> ExportSettings:
    """Validate settings and return them as an ExportSettings.

    Raises:
        ValidationError: If any field is outside its supported values
    """
    if isinstance(settings, ExportSettings):
        settings = settings.model_dump()
    try:
        return ExportSettings.model_validate(dict(settings))
    except pydantic.ValidationError as e:
        messages = [err["msg"].removeprefix("Value error, ") for err in e.errors()]
        raise ValidationError("; ".join(messages)) from e


def validate_sources(clips: Sequence[Clip]) -> None:
    """Require every clip's source media to be an existing file.

    Paths with line breaks are rejected too; the concat manifest is
    line-oriented.

    Raises:
        ValidationError: For the first missing or non-file source
    """
    for index, clip in enumerate(clips):
        if "\n" in clip.file_path or "\r" in clip.file_path:
            raise ValidationError(f"{_describe(index, clip)} source path contains a line break")
        path = Path(clip.file_path)
        if not path.exists():
            raise ValidationError(f"{_describe(index, clip)} source not found: {path}")
        if not path.is_file():
            raise ValidationError(f"{_describe(index, clip)} source is not a file: {path}")


def validate_output_path(output_path: Path) -> list[str]:
    """Check an export destination.

    Args:
        output_path: Full path of the file to be written

    Returns:
        List of problems; empty when the path is usable
    """
    errors = []
    parent = output_path.parent
    if not parent.exists():
        errors.append("Output directory does not exist")
    elif not parent.is_dir():
        errors.append("Output path is not a directory")

    if output_path.exists():
        errors.append("Output file already exists")

    name = output_path.name
    if not name:
        errors.append("Filename cannot be empty")
    elif "/" in name or "\\" in name:
        errors.append("Filename cannot contain path separators")

    return errors


def check_ffmpeg(ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe") -> dict[str, str]:
    """Check if FFmpeg and FFprobe are installed and get versions.

    Returns:
        Dict with 'ffmpeg_version' and 'ffprobe_version'

    Raises:
        DependencyError: If FFmpeg or FFprobe not found
    """
    result = {}
    for name, binary in (("ffmpeg", ffmpeg), ("ffprobe", ffprobe)):
        path = shutil.which(binary)
        if not path:
            raise DependencyError(
                name,
                f"{binary} not found in PATH",
                "Install with: brew install ffmpeg (macOS) or apt install ffmpeg (Linux)",
            )
        try:
            proc = subprocess.run(
                [path, "-version"],
                capture_output=True,
                text=True,
                timeout=5,
            )
            version_line = proc.stdout.split("\n")[0]
            result[f"{name}_version"] = version_line.split()[2] if version_line else "unknown"
        except (subprocess.TimeoutExpired, IndexError):
            result[f"{name}_version"] = "unknown"
    return result


def check_disk_space(path: Path, required_mb: int) -> dict[str, Any]:
    """Check if there's enough disk space at the given path.

    Args:
        path: Path to check (nearest existing ancestor is used)
        required_mb: Required space in megabytes

    Returns:
        Dict with 'available_mb', 'required_mb', 'sufficient'

    Raises:
        ValidationError: If no ancestor of the path can be inspected
    """
    check_path = path
    while not check_path.exists() and check_path != check_path.parent:
        check_path = check_path.parent

    try:
        stat = shutil.disk_usage(check_path)
    except OSError as e:
        raise ValidationError(f"Cannot check disk space: {e}") from e

    available_mb = stat.free // (1024 * 1024)
    return {
        "available_mb": available_mb,
        "required_mb": required_mb,
        "sufficient": available_mb >= required_mb,
    }
