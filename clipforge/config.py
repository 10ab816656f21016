"""
clipforge.config - YAML config loading, preset merging, validation.

Handles loading clipforge.yaml from a project directory, applying export
preset defaults, and validating all parameters.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from clipforge.exceptions import ConfigError
from clipforge.io import read_yaml
from clipforge.models import ExportSettings

CONFIG_FILENAME = "clipforge.yaml"


BUILTIN_PRESETS: dict[str, dict[str, Any]] = {
    "draft": {
        "resolution": "720p",
        "quality": "low",
        "format": "mp4",
        "codec": "h264",
    },
    "standard": {
        "resolution": "source",
        "quality": "medium",
        "format": "mp4",
        "codec": "h264",
    },
    "master": {
        "resolution": "1080p",
        "quality": "high",
        "format": "mp4",
        "codec": "h264",
    },
}


class ClipForgeConfig(BaseModel):
    """Resolved configuration for the export pipeline."""

    project_name: str = "untitled"

    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    temp_dir: Path | None = None

    trim_tolerance: float = Field(default=0.01, gt=0.0)
    min_trim_duration: float = Field(default=0.1, gt=0.0)
    copy_safe_formats: list[str] = Field(
        default_factory=lambda: ["mp4", "mov", "m4v", "mkv", "webm"]
    )
    reencode_video_codec: str = "libx264"
    reencode_audio_codec: str = "aac"
    reencode_output: bool = False

    trim_timeout_seconds: float | None = Field(default=None, gt=0.0)
    encode_timeout_seconds: float | None = Field(default=None, gt=0.0)

    probe_sources: bool = True

    export_preset: str = "standard"
    settings: dict[str, Any] = Field(default_factory=dict)

    config_path: Path | None = None

    @field_validator("export_preset")
    @classmethod
    def validate_preset(cls, v: str) -> str:
        if v not in BUILTIN_PRESETS:
            raise ValueError(f"export_preset must be one of: {set(BUILTIN_PRESETS)}")
        return v

    @field_validator("copy_safe_formats")
    @classmethod
    def normalize_formats(cls, v: list[str]) -> list[str]:
        return [fmt.lower().lstrip(".") for fmt in v]

    def export_settings(self, preset: str | None = None, **overrides: Any) -> ExportSettings:
        """Resolve preset defaults, configured settings and explicit overrides."""
        resolved = merge_config(self.settings, load_preset(preset or self.export_preset))
        resolved = merge_config(overrides, resolved)
        return ExportSettings(**resolved)


def load_preset(name: str) -> dict[str, Any]:
    """Load a built-in export preset by name."""
    if name in BUILTIN_PRESETS:
        return BUILTIN_PRESETS[name].copy()
    raise ValueError(f"Unknown preset: {name}")


def merge_config(project_config: dict[str, Any], defaults: dict[str, Any]) -> dict[str, Any]:
    """Merge config over defaults. Non-None project values take precedence."""
    merged = defaults.copy()
    for key, value in project_config.items():
        if key == "settings" and isinstance(value, dict):
            merged.setdefault("settings", {})
            merged["settings"] = {**merged["settings"], **value}
        elif value is not None:
            merged[key] = value
    return merged


def find_config_dir(start: Path | None = None) -> Path | None:
    """Walk up from start (default: cwd) looking for clipforge.yaml."""
    current = (start or Path.cwd()).resolve()
    while current != current.parent:
        if (current / CONFIG_FILENAME).exists():
            return current
        current = current.parent
    return None


def load_config(project_dir: Path) -> ClipForgeConfig:
    """Load and validate configuration from a project directory."""
    config_file = project_dir / CONFIG_FILENAME
    if not config_file.exists():
        raise FileNotFoundError(f"No {CONFIG_FILENAME} found in {project_dir}")

    try:
        raw_config = read_yaml(config_file)
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse {config_file}: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError(f"{config_file} must contain a mapping")

    raw_config["config_path"] = config_file
    if raw_config.get("temp_dir"):
        temp_dir = Path(raw_config["temp_dir"]).expanduser()
        if not temp_dir.is_absolute():
            temp_dir = project_dir / temp_dir
        raw_config["temp_dir"] = temp_dir

    return ClipForgeConfig(**raw_config)


def create_default_config(project_name: str, preset: str = "standard") -> dict[str, Any]:
    """Create a default config for a new project."""
    defaults = {
        "project_name": project_name,
        "ffmpeg_path": "ffmpeg",
        "ffprobe_path": "ffprobe",
        "export_preset": preset,
        "probe_sources": True,
        "reencode_output": False,
    }
    load_preset(preset)
    return defaults


def write_config(config: dict[str, Any], path: Path) -> None:
    """Write configuration to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
