"""
clipforge.export.estimate - Pre-flight export time and size heuristics.

Pure functions of the clip list and settings; nothing here touches the
filesystem or spawns FFmpeg.
"""

from __future__ import annotations

from collections.abc import Sequence

from clipforge.models import Clip, ExportEstimate, ExportSettings

REALTIME_FACTOR = 0.1

RESOLUTION_MULTIPLIERS = {"1080p": 1.2, "720p": 0.8, "source": 1.0}
QUALITY_MULTIPLIERS = {"high": 1.5, "medium": 1.0, "low": 0.7}
BASE_BITRATES = {"1080p": 8_000_000, "720p": 3_000_000, "source": 5_000_000}


def total_duration(clips: Sequence[Clip]) -> float:
    return sum(clip.duration for clip in clips)


def estimate_time(clips: Sequence[Clip], settings: ExportSettings) -> float:
    """Estimated export wall time in seconds."""
    multiplier = RESOLUTION_MULTIPLIERS.get(settings.resolution, 1.0)
    multiplier *= QUALITY_MULTIPLIERS.get(settings.quality, 1.0)
    return total_duration(clips) * REALTIME_FACTOR * multiplier


def estimate_bitrate(settings: ExportSettings) -> float:
    """Output bitrate in bits per second for the given settings."""
    base = BASE_BITRATES.get(settings.resolution, BASE_BITRATES["source"])
    return base * QUALITY_MULTIPLIERS.get(settings.quality, 1.0)


def estimate_size(clips: Sequence[Clip], settings: ExportSettings) -> int:
    """Estimated output size in bytes."""
    return int(total_duration(clips) * estimate_bitrate(settings) / 8)


def estimate_export(clips: Sequence[Clip], settings: ExportSettings) -> ExportEstimate:
    return ExportEstimate(
        estimated_time_seconds=estimate_time(clips, settings),
        estimated_file_size_bytes=estimate_size(clips, settings),
        total_duration_seconds=total_duration(clips),
        clip_count=len(clips),
    )
