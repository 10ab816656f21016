"""
clipforge.export.timecode - FFmpeg clock time conversions.

FFmpeg takes seek offsets and durations as HH:MM:SS.mmm and reports its
position as time=HH:MM:SS.hh in diagnostic lines.
"""

from __future__ import annotations

import re

CLOCK_PATTERN = re.compile(r"(-?)(\d+):(\d{1,2}):(\d{1,2}(?:\.\d+)?)")


def seconds_to_timestamp(seconds: float) -> str:
    """Convert float seconds to an FFmpeg timestamp at millisecond resolution.

    Args:
        seconds: Non-negative time in seconds

    Returns:
        Timestamp string in HH:MM:SS.mmm format
    """
    total_ms = round(max(seconds, 0.0) * 1000)
    ms = total_ms % 1000
    total_seconds = total_ms // 1000
    ss = total_seconds % 60
    mm = (total_seconds // 60) % 60
    hh = total_seconds // 3600

    return f"{hh:02d}:{mm:02d}:{ss:02d}.{ms:03d}"


def timestamp_to_seconds(timestamp: str) -> float:
    """Convert an FFmpeg clock string to seconds.

    Accepts any fractional precision (HH:MM:SS, HH:MM:SS.hh, HH:MM:SS.mmm)
    and a leading minus, which FFmpeg prints before the first packet.

    Raises:
        ValueError: If the string is not a clock time
    """
    match = CLOCK_PATTERN.fullmatch(timestamp.strip())
    if not match:
        raise ValueError(f"Not a clock time: {timestamp!r}")
    sign, hh, mm, ss = match.groups()
    seconds = int(hh) * 3600 + int(mm) * 60 + float(ss)
    return -seconds if sign else seconds


def format_seconds(seconds: float) -> str:
    """Format a duration argument for FFmpeg's -t option (millisecond precision)."""
    return f"{max(seconds, 0.0):.3f}"
