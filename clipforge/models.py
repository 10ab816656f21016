"""
clipforge.models - Timeline, settings and progress data structures.

Clip geometry is deliberately not constrained at construction time: the
timeline validator reports bad clips with their position and rule instead.
Export settings are closed enums and reject anything else immediately.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

VALID_RESOLUTIONS = ("source", "1080p", "720p")
VALID_QUALITIES = ("high", "medium", "low")
SUPPORTED_FORMAT = "mp4"
SUPPORTED_CODEC = "h264"


class ExportStep(str, Enum):
    """Pipeline state reported in progress events."""

    IDLE = "Idle"
    PREPARING = "Preparing"
    EXPORTING = "Exporting"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ExportStep.COMPLETED, ExportStep.FAILED, ExportStep.CANCELLED)


class Clip(BaseModel):
    """A trimmed source segment placed on a timeline track."""

    file_path: str
    start_time: float
    duration: float
    trim_start: float = 0.0
    trim_end: float
    track_id: str = "main"
    source_duration: float | None = None
    trimmed_file_path: str | None = None

    @property
    def effective_source_duration(self) -> float:
        """Probed source duration, or trim_end when the source was never probed."""
        if self.source_duration is not None:
            return self.source_duration
        return self.trim_end

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    @property
    def input_path(self) -> str:
        """Path the concat stage should read: the trimmed artifact if any."""
        return self.trimmed_file_path or self.file_path


class ExportSettings(BaseModel):
    """Output settings. Only one container and codec are supported."""

    resolution: str = "source"
    quality: str = "medium"
    format: str = SUPPORTED_FORMAT
    codec: str = SUPPORTED_CODEC

    @field_validator("resolution")
    @classmethod
    def validate_resolution(cls, v: str) -> str:
        if v not in VALID_RESOLUTIONS:
            raise ValueError(
                "Invalid resolution. Must be 'source', '1080p', or '720p'"
            )
        return v

    @field_validator("quality")
    @classmethod
    def validate_quality(cls, v: str) -> str:
        if v not in VALID_QUALITIES:
            raise ValueError("Invalid quality. Must be 'high', 'medium', or 'low'")
        return v

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v != SUPPORTED_FORMAT:
            raise ValueError(f"Invalid format. Only '{SUPPORTED_FORMAT}' is supported")
        return v

    @field_validator("codec")
    @classmethod
    def validate_codec(cls, v: str) -> str:
        if v != SUPPORTED_CODEC:
            raise ValueError(f"Invalid codec. Only '{SUPPORTED_CODEC}' is supported")
        return v


class ExportProgress(BaseModel):
    """One progress event delivered to the host's sink."""

    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    current_step: ExportStep = ExportStep.PREPARING
    estimated_time_remaining: float = Field(default=0.0, ge=0.0)
    error: str | None = None

    frame: int | None = None
    fps: float | None = None
    bitrate: float | None = None
    elapsed_time: float | None = None
    speed: float | None = None


class ExportResult(BaseModel):
    """Outcome of one export attempt."""

    success: bool
    output_path: str | None = None
    error_message: str | None = None


class ExportEstimate(BaseModel):
    """Pre-flight prediction of export cost."""

    estimated_time_seconds: float
    estimated_file_size_bytes: int
    total_duration_seconds: float
    clip_count: int


class ExportJob(BaseModel):
    """Registry record for an export attempt."""

    id: str
    status: ExportStep = ExportStep.IDLE
    progress: float = 0.0
    output_path: str | None = None
    error_message: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)
