"""
clipforge.export.trim - Sub-range extraction of source clips.

A clip whose trim window covers its whole source is passed through to the
concat stage untouched. Any other clip is cut into a scratch file first,
by stream copy when the container allows it and by re-encode otherwise.
Stream-copy cuts snap to keyframes, so their boundaries are not
frame-accurate.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from clipforge.config import ClipForgeConfig
from clipforge.export.ffmpeg import FFmpegRunner
from clipforge.export.timecode import format_seconds, seconds_to_timestamp
from clipforge.jobs import CancelToken
from clipforge.logging import logger
from clipforge.models import Clip
from clipforge.tempfiles import TempResourceTracker

TRIM_TOLERANCE = 0.01
FALLBACK_EXTENSION = "mkv"


def needs_trim(
    trim_start: float,
    trim_end: float,
    source_duration: float,
    tolerance: float = TRIM_TOLERANCE,
) -> bool:
    """Return True unless the trim window matches the full source within tolerance."""
    return abs(trim_start) > tolerance or abs(trim_end - source_duration) > tolerance


def trimmed_duration(trim_start: float, trim_end: float) -> float:
    return trim_end - trim_start


def source_extension(path: str) -> str:
    """Lower-case extension without the dot; empty when the file has none."""
    return Path(path).suffix.lower().lstrip(".")


def build_trim_args(
    source: str,
    output: Path,
    trim_start: float,
    duration: float,
    stream_copy: bool,
    video_codec: str = "libx264",
    audio_codec: str = "aac",
) -> list[str]:
    """Build FFmpeg arguments for extracting [trim_start, trim_start + duration)."""
    args = [
        "-y",
        "-ss",
        seconds_to_timestamp(trim_start),
        "-i",
        source,
        "-t",
        format_seconds(duration),
    ]
    if stream_copy:
        args += ["-c", "copy", "-avoid_negative_ts", "make_zero"]
    else:
        args += ["-c:v", video_codec, "-c:a", audio_codec]
    args.append(str(output))
    return args


class TrimOrchestrator:
    """Produces trimmed scratch artifacts for clips that need them."""

    def __init__(self, config: ClipForgeConfig, runner: FFmpegRunner) -> None:
        self.config = config
        self.runner = runner

    def is_copy_safe(self, path: str) -> bool:
        return source_extension(path) in self.config.copy_safe_formats

    async def trim_clip(
        self,
        clip: Clip,
        tracker: TempResourceTracker,
        directory: Path | None = None,
        cancel_token: CancelToken | None = None,
    ) -> Clip:
        """Cut one clip into a tracked scratch file.

        Returns:
            A replacement clip whose trim window is [0, duration] and whose
            trimmed_file_path points at the artifact

        Raises:
            ExternalToolError: If FFmpeg fails; the artifact stays tracked
        """
        length = trimmed_duration(clip.trim_start, clip.trim_end)
        extension = source_extension(clip.file_path) or FALLBACK_EXTENSION
        output = tracker.allocate_file(
            suffix=f".{extension}",
            prefix=f"trim_{Path(clip.file_path).stem}",
            directory=directory,
        )
        stream_copy = self.is_copy_safe(clip.file_path)

        logger.info(
            "Trimming %s [%.3f, %.3f) via %s",
            clip.file_path,
            clip.trim_start,
            clip.trim_end,
            "stream copy" if stream_copy else "re-encode",
        )
        args = build_trim_args(
            source=clip.file_path,
            output=output,
            trim_start=clip.trim_start,
            duration=length,
            stream_copy=stream_copy,
            video_codec=self.config.reencode_video_codec,
            audio_codec=self.config.reencode_audio_codec,
        )
        await self.runner.run(
            args,
            description=f"trim of {Path(clip.file_path).name}",
            timeout=self.config.trim_timeout_seconds,
            cancel_token=cancel_token,
        )

        return clip.model_copy(
            update={
                "duration": length,
                "trim_start": 0.0,
                "trim_end": length,
                "source_duration": length,
                "trimmed_file_path": str(output),
            }
        )

    async def trim_clips(
        self,
        clips: Sequence[Clip],
        tracker: TempResourceTracker,
        directory: Path | None = None,
        cancel_token: CancelToken | None = None,
    ) -> list[Clip]:
        """Return clips in the same order, trimmed where needed.

        Stops at the first FFmpeg failure and propagates it; artifacts
        produced so far remain registered with the tracker for cleanup.
        """
        result = []
        for clip in clips:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            if needs_trim(
                clip.trim_start,
                clip.trim_end,
                clip.effective_source_duration,
                self.config.trim_tolerance,
            ):
                result.append(
                    await self.trim_clip(clip, tracker, directory, cancel_token=cancel_token)
                )
            else:
                result.append(clip)

        trimmed = sum(1 for clip in result if clip.trimmed_file_path)
        logger.info("Trimmed %d of %d clips", trimmed, len(result))
        return result
