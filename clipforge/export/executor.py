"""
clipforge.export.executor - End-to-end timeline export.

Drives one export attempt through validation, trimming, manifest writing
and the final concat encode, reporting progress to a host-provided sink.
Every attempt returns an ExportResult; errors are reported, not raised, and
the attempt's scratch artifacts are removed on every path. The encode writes
to a tracked staging file next to the output, which replaces the output only
after FFmpeg succeeds, so a failed attempt never touches an existing file.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import pydantic

from clipforge.config import ClipForgeConfig
from clipforge.exceptions import ArtifactIOError, ClipForgeError, ExportCancelledError, ValidationError
from clipforge.export.estimate import estimate_time, total_duration
from clipforge.export.ffmpeg import FFmpegRunner
from clipforge.export.manifest import build_manifest
from clipforge.export.progress import parse_progress_line
from clipforge.export.trim import TrimOrchestrator
from clipforge.jobs import ExportRegistry
from clipforge.logging import logger
from clipforge.models import Clip, ExportProgress, ExportResult, ExportSettings, ExportStep
from clipforge.tempfiles import TempResourceTracker
from clipforge.validation import validate_export_settings, validate_sources, validate_timeline

ProgressSink = Callable[[ExportProgress], "Awaitable[None] | None"]

OUTPUT_EXTENSION = ".mp4"

RESOLUTION_FILTERS = {
    "1080p": "scale=1920:1080",
    "720p": "scale=1280:720",
}
QUALITY_CRF = {"high": 18, "medium": 23, "low": 28}


def resolve_output_path(output_dir: Path | str, filename: str) -> Path:
    """Join directory and filename, appending .mp4 when missing."""
    if not filename.lower().endswith(OUTPUT_EXTENSION):
        filename = f"{filename}{OUTPUT_EXTENSION}"
    return Path(output_dir) / filename


def build_encode_args(
    manifest: Path,
    output: Path,
    settings: ExportSettings,
    config: ClipForgeConfig,
) -> list[str]:
    """Build concat-demuxer arguments for the final encode.

    Stream copy by default; with reencode_output the settings pick the
    scale filter and CRF.
    """
    args = ["-y", "-f", "concat", "-safe", "0", "-i", str(manifest)]
    if config.reencode_output:
        scale = RESOLUTION_FILTERS.get(settings.resolution)
        if scale:
            args += ["-vf", scale]
        args += [
            "-c:v",
            config.reencode_video_codec,
            "-crf",
            str(QUALITY_CRF.get(settings.quality, 23)),
            "-c:a",
            config.reencode_audio_codec,
        ]
    else:
        args += ["-c", "copy"]
    args.append(str(output))
    return args


def coerce_clips(clips: Sequence[Clip | Mapping[str, Any]]) -> list[Clip]:
    """Accept Clip models or plain descriptors.

    Raises:
        ValidationError: If a descriptor is missing fields or has bad types
    """
    result = []
    for index, clip in enumerate(clips):
        if isinstance(clip, Clip):
            result.append(clip)
            continue
        try:
            result.append(Clip.model_validate(dict(clip)))
        except (pydantic.ValidationError, TypeError, ValueError) as e:
            raise ValidationError(f"Clip {index + 1} is malformed: {e}") from e
    return result


class ExportExecutor:
    """Runs export attempts against one configuration."""

    def __init__(
        self,
        config: ClipForgeConfig | None = None,
        runner: FFmpegRunner | None = None,
        registry: ExportRegistry | None = None,
    ) -> None:
        self.config = config or ClipForgeConfig()
        self.runner = runner or FFmpegRunner(self.config.ffmpeg_path)
        self.registry = registry or ExportRegistry()
        self.trimmer = TrimOrchestrator(self.config, self.runner)

    def prepare(
        self,
        clips: Sequence[Clip | Mapping[str, Any]],
        output_dir: Path | str,
        filename: str,
        settings: ExportSettings | Mapping[str, Any],
    ) -> tuple[list[Clip], ExportSettings, Path]:
        """Check every precondition of an export without side effects.

        Raises:
            ValidationError: On the first failed precondition
        """
        output_dir = Path(output_dir)
        if not output_dir.is_dir():
            raise ValidationError(f"Output directory does not exist: {output_dir}")
        if not filename or "/" in filename or "\\" in filename:
            raise ValidationError(f"Invalid output filename: {filename!r}")

        export_settings = validate_export_settings(settings)
        timeline = coerce_clips(clips)
        validate_timeline(timeline, self.config.min_trim_duration)
        validate_sources(timeline)
        return timeline, export_settings, resolve_output_path(output_dir, filename)

    async def export(
        self,
        clips: Sequence[Clip | Mapping[str, Any]],
        output_dir: Path | str,
        filename: str,
        settings: ExportSettings | Mapping[str, Any],
        on_progress: ProgressSink | None = None,
        job_id: str | None = None,
    ) -> ExportResult:
        """Export a timeline to a single file.

        Args:
            clips: Timeline clips or clip descriptors
            output_dir: Existing directory for the output file
            filename: Output filename; .mp4 is appended when missing
            settings: ExportSettings or a mapping of its fields
            on_progress: Sync or async callable receiving progress events
            job_id: Registry id, for status queries and cancellation

        Returns:
            ExportResult; never raises
        """
        try:
            job, token = self.registry.create(job_id)
        except ValueError as e:
            return ExportResult(success=False, error_message=str(e))
        tracker = TempResourceTracker(self.config.temp_dir)
        result = ExportResult(success=False, error_message="Export did not run")
        status = ExportStep.FAILED

        async def emit(event: ExportProgress) -> None:
            self.registry.update(job.id, event)
            if on_progress is None:
                return
            try:
                outcome = on_progress(event)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.warning("Progress sink raised on %s event", event.current_step.value, exc_info=True)

        try:
            await emit(ExportProgress(progress=0.0, current_step=ExportStep.PREPARING))
            token.raise_if_cancelled()

            timeline, export_settings, output_path = self.prepare(
                clips, output_dir, filename, settings
            )
            logger.info("Exporting %d clips to %s", len(timeline), output_path)

            scratch = tracker.create_directory(prefix="export")
            trimmed = await self.trimmer.trim_clips(
                timeline, tracker, directory=scratch, cancel_token=token
            )
            token.raise_if_cancelled()

            manifest = build_manifest(trimmed, tracker, directory=scratch)
            token.raise_if_cancelled()

            timeline_length = total_duration(trimmed)
            await emit(
                ExportProgress(
                    progress=0.0,
                    current_step=ExportStep.EXPORTING,
                    estimated_time_remaining=estimate_time(trimmed, export_settings),
                )
            )

            async def on_line(line: str) -> None:
                event = parse_progress_line(line, timeline_length)
                if event is not None:
                    await emit(event)

            staging = tracker.allocate_file(
                suffix=output_path.suffix,
                prefix=f".{output_path.stem}.partial",
                directory=output_path.parent,
            )
            await self.runner.run(
                build_encode_args(manifest, staging, export_settings, self.config),
                description="export",
                on_line=on_line,
                timeout=self.config.encode_timeout_seconds,
                cancel_token=token,
            )
            try:
                staging.replace(output_path)
            except OSError as e:
                raise ArtifactIOError(f"Failed to move export into place at {output_path}: {e}") from e

            result = ExportResult(success=True, output_path=str(output_path))
            status = ExportStep.COMPLETED
            await emit(ExportProgress(progress=100.0, current_step=ExportStep.COMPLETED))
            logger.info("Export completed: %s", output_path)

        except ExportCancelledError as e:
            status = ExportStep.CANCELLED
            result = ExportResult(success=False, error_message=str(e))
            await emit(ExportProgress(current_step=ExportStep.CANCELLED, error=str(e)))
            logger.info("Export cancelled")

        except ClipForgeError as e:
            result = ExportResult(success=False, error_message=str(e))
            await emit(ExportProgress(current_step=ExportStep.FAILED, error=str(e)))
            logger.error("Export failed: %s", e)

        except Exception as e:
            logger.exception("Unexpected export failure")
            message = f"Unexpected export failure: {e}"
            result = ExportResult(success=False, error_message=message)
            await emit(ExportProgress(current_step=ExportStep.FAILED, error=message))

        finally:
            failures = tracker.cleanup_all()
            if failures:
                logger.warning("%d temp artifacts could not be removed", failures)
            self.registry.finish(job.id, result, status)

        return result
