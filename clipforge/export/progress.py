"""
clipforge.export.progress - FFmpeg diagnostic line parsing.

FFmpeg reports encode status on stderr as lines like

    frame= 1234 fps= 30 q=-1.0 size= 5120kB time=00:00:41.13 bitrate=1019.7kbits/s speed=1.0x

Each field is extracted independently; a line without a time= field is not
a status line and yields nothing.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from clipforge.export.timecode import timestamp_to_seconds
from clipforge.models import ExportProgress, ExportStep

FRAME_PATTERN = re.compile(r"frame=\s*(\d+)")
FPS_PATTERN = re.compile(r"fps=\s*(\d+(?:\.\d+)?)")
TIME_PATTERN = re.compile(r"time=\s*(-?\d+:\d{1,2}:\d{1,2}(?:\.\d+)?)")
BITRATE_PATTERN = re.compile(r"bitrate=\s*(\d+(?:\.\d+)?)\s*kbits/s")
SPEED_PATTERN = re.compile(r"speed=\s*(\d+(?:\.\d+)?(?:e[+-]?\d+)?)x")

BANNER_MARKERS = (
    "ffmpeg version",
    "built with",
    "configuration:",
    "Copyright",
    "--enable-",
    "--disable-",
)


def _search(pattern: re.Pattern[str], line: str) -> str | None:
    match = pattern.search(line)
    return match.group(1) if match else None


def parse_progress_line(line: str, total_duration: float) -> ExportProgress | None:
    """Turn one diagnostic line into an Exporting progress event.

    Args:
        line: A single line of FFmpeg stderr
        total_duration: Length of the whole timeline in seconds

    Returns:
        ExportProgress with whatever telemetry the line carried, or None
        if the line has no elapsed time
    """
    raw_time = _search(TIME_PATTERN, line)
    if raw_time is None:
        return None

    elapsed = timestamp_to_seconds(raw_time)

    frame = _search(FRAME_PATTERN, line)
    fps = _search(FPS_PATTERN, line)
    bitrate = _search(BITRATE_PATTERN, line)
    speed = _search(SPEED_PATTERN, line)
    speed_value = float(speed) if speed is not None else None

    if total_duration > 0:
        progress = max(0.0, min(100.0, elapsed / total_duration * 100.0))
    else:
        progress = 0.0

    if speed_value is not None and speed_value > 0:
        remaining = max(0.0, (total_duration - elapsed) / speed_value)
    else:
        remaining = 0.0

    return ExportProgress(
        progress=progress,
        current_step=ExportStep.EXPORTING,
        estimated_time_remaining=remaining,
        frame=int(frame) if frame is not None else None,
        fps=float(fps) if fps is not None else None,
        bitrate=float(bitrate) if bitrate is not None else None,
        elapsed_time=elapsed,
        speed=speed_value,
    )


def summarize_diagnostics(lines: Iterable[str], max_lines: int = 15) -> str:
    """Reduce FFmpeg stderr to the part worth showing in an error message.

    Drops the version banner and build configuration that precede every
    run, and keeps the last max_lines remaining lines.
    """
    useful = []
    in_banner = True
    for line in lines:
        stripped = line.strip()
        if not stripped:
            continue
        if in_banner:
            if any(marker in stripped for marker in BANNER_MARKERS):
                continue
            if stripped.startswith("lib") and "/" in stripped:
                continue
            in_banner = False
        useful.append(stripped)
    return "\n".join(useful[-max_lines:])
