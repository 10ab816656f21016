"""
clipforge.tempfiles - Scratch artifact ownership and cleanup.

Every trimmed clip, concat manifest and per-attempt scratch directory is
registered with a TempResourceTracker before (or as) it is created. The
tracker is the only code allowed to delete those paths, and it deletes all
of them exactly once at the end of an export attempt, whatever the outcome.
"""

from __future__ import annotations

import shutil
import tempfile
import time
import uuid
from pathlib import Path

from clipforge.exceptions import ArtifactIOError
from clipforge.logging import logger

SCRATCH_DIRNAME = "clipforge"


def get_temp_dir(base: Path | None = None) -> Path:
    """Return the scratch root, creating it if needed.

    Args:
        base: Configured scratch root; defaults to <system tmp>/clipforge

    Returns:
        Existing directory path

    Raises:
        ArtifactIOError: If the directory cannot be created
    """
    temp_dir = base if base is not None else Path(tempfile.gettempdir()) / SCRATCH_DIRNAME
    try:
        temp_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ArtifactIOError(f"Failed to create temp directory {temp_dir}: {e}") from e
    return temp_dir


def unique_name(prefix: str, suffix: str = "") -> str:
    """Build a scratch filename from a nanosecond timestamp and a random tag."""
    return f"{prefix}_{time.time_ns()}_{uuid.uuid4().hex[:8]}{suffix}"


class TempResourceTracker:
    """Owns the scratch files and directories of one export attempt."""

    def __init__(self, base_dir: Path | None = None) -> None:
        self.base_dir = base_dir
        self.files: list[Path] = []
        self.directories: list[Path] = []

    def __enter__(self) -> TempResourceTracker:
        return self

    def __exit__(self, *exc_info) -> None:
        self.cleanup_all()

    def __len__(self) -> int:
        return len(self.files) + len(self.directories)

    def add_file(self, path: Path | str) -> Path:
        """Register ownership of a file that exists or is about to."""
        path = Path(path)
        if path not in self.files:
            self.files.append(path)
        return path

    def add_directory(self, path: Path | str) -> Path:
        """Register ownership of a directory that exists or is about to."""
        path = Path(path)
        if path not in self.directories:
            self.directories.append(path)
        return path

    def _root(self, directory: Path | None) -> Path:
        if directory is not None:
            return directory
        return get_temp_dir(self.base_dir)

    def allocate_file(
        self,
        suffix: str = "",
        prefix: str = "artifact",
        directory: Path | None = None,
    ) -> Path:
        """Reserve and register a unique path for an external tool to write."""
        return self.add_file(self._root(directory) / unique_name(prefix, suffix))

    def create_file(
        self,
        suffix: str = "",
        prefix: str = "artifact",
        content: str | None = None,
        directory: Path | None = None,
    ) -> Path:
        """Register a unique file path, then create it.

        Registration happens first so a failed write still leaves the path
        owned by the tracker.

        Raises:
            ArtifactIOError: If the file cannot be written
        """
        path = self.allocate_file(suffix=suffix, prefix=prefix, directory=directory)
        try:
            with open(path, "w", encoding="utf-8") as f:
                if content:
                    f.write(content)
        except OSError as e:
            raise ArtifactIOError(f"Failed to write temp file {path}: {e}") from e
        return path

    def create_directory(self, prefix: str = "export", parent: Path | None = None) -> Path:
        """Register a unique directory path, then create it.

        Raises:
            ArtifactIOError: If the directory cannot be created
        """
        path = self.add_directory(self._root(parent) / unique_name(prefix))
        try:
            path.mkdir(parents=True, exist_ok=False)
        except OSError as e:
            raise ArtifactIOError(f"Failed to create temp directory {path}: {e}") from e
        return path

    def cleanup_all(self) -> int:
        """Delete every tracked path. Best effort, never raises.

        Files go first, then directories innermost-first (reverse
        registration order). Tracked lists are drained, so a second call
        is a no-op.

        Returns:
            Number of paths that could not be removed
        """
        failures = 0
        files, self.files = self.files, []
        directories, self.directories = self.directories, []

        for path in files:
            try:
                path.unlink(missing_ok=True)
                logger.debug("Removed temp file %s", path)
            except OSError as e:
                failures += 1
                logger.warning("Failed to remove temp file %s: %s", path, e)

        for path in reversed(directories):
            if not path.exists():
                continue
            try:
                shutil.rmtree(path)
                logger.debug("Removed temp directory %s", path)
            except OSError as e:
                failures += 1
                logger.warning("Failed to remove temp directory %s: %s", path, e)

        return failures


def remove_stale_files(temp_dir: Path, older_than_seconds: float) -> list[Path]:
    """Delete scratch leftovers from crashed runs.

    Only entries whose modification time is older than the threshold are
    touched, so artifacts of exports still running are left to their
    trackers.

    Returns:
        Paths that were removed
    """
    removed: list[Path] = []
    if not temp_dir.exists():
        return removed

    cutoff = time.time() - older_than_seconds
    for entry in temp_dir.iterdir():
        try:
            if entry.stat().st_mtime > cutoff:
                continue
            if entry.is_dir():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            removed.append(entry)
        except OSError as e:
            logger.warning("Failed to remove stale temp entry %s: %s", entry, e)
    return removed
