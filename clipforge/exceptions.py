"""
clipforge.exceptions - Custom exception classes.

All ClipForge-specific exceptions inherit from ClipForgeError.
"""

from __future__ import annotations


class ClipForgeError(Exception):
    """Base exception for all ClipForge errors."""

    pass


class ConfigError(ClipForgeError):
    """Configuration loading or validation error."""

    pass


class ValidationError(ClipForgeError):
    """Malformed timeline, settings or output path."""

    pass


class ArtifactIOError(ClipForgeError):
    """Filesystem failure creating, writing or deleting an export artifact."""

    pass


class ProbeError(ClipForgeError):
    """Media probing error."""

    pass


class ExternalToolError(ClipForgeError):
    """FFmpeg exited non-zero or could not be spawned."""

    def __init__(self, message: str, returncode: int | None = None, diagnostics: str = ""):
        self.message = message
        self.returncode = returncode
        self.diagnostics = diagnostics
        super().__init__(message)


class ExportTimeoutError(ExternalToolError):
    """FFmpeg did not finish within the configured watchdog timeout."""

    pass


class ExportCancelledError(ClipForgeError):
    """Export attempt was cancelled by the caller."""

    pass


class DependencyError(ClipForgeError):
    """Required dependency missing or misconfigured."""

    def __init__(self, dependency: str, message: str, install_hint: str | None = None):
        self.dependency = dependency
        self.message = message
        self.install_hint = install_hint
        super().__init__(f"{dependency}: {message}")
