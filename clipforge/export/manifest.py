"""
clipforge.export.manifest - FFmpeg concat demuxer list.

Clips from every track are flattened into one sequence ordered by
(track_id, start_time). This is only meaningful when tracks do not overlap
in time, which validation enforces within a track but not across tracks.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from clipforge.exceptions import ArtifactIOError
from clipforge.logging import logger
from clipforge.models import Clip
from clipforge.tempfiles import TempResourceTracker


def order_clips(clips: Sequence[Clip]) -> list[Clip]:
    """Deterministic concat order: track id, then timeline position."""
    return sorted(clips, key=lambda clip: (clip.track_id, clip.start_time))


def manifest_entry(path: str | Path) -> str:
    """Render one concat demuxer line for an absolute path.

    Raises:
        ArtifactIOError: If the path contains a line break
    """
    absolute = str(Path(path).resolve())
    if "\n" in absolute or "\r" in absolute:
        raise ArtifactIOError(f"Concat manifest path contains a line break: {absolute!r}")
    escaped = absolute.replace("'", "'\\''")
    return f"file '{escaped}'"


def render_manifest(clips: Sequence[Clip]) -> str:
    """Render the manifest text; trimmed artifacts win over original sources."""
    lines = [manifest_entry(clip.input_path) for clip in order_clips(clips)]
    return "\n".join(lines) + "\n"


def build_manifest(
    clips: Sequence[Clip],
    tracker: TempResourceTracker,
    directory: Path | None = None,
) -> Path:
    """Write the concat manifest as a tracked scratch file.

    Returns:
        Path of the manifest

    Raises:
        ArtifactIOError: If the manifest cannot be written
    """
    content = render_manifest(clips)
    path = tracker.create_file(
        suffix=".txt",
        prefix="concat",
        content=content,
        directory=directory,
    )
    logger.debug("Wrote concat manifest %s with %d entries", path, len(clips))
    return path


def read_manifest(path: Path) -> list[str]:
    """Parse a concat manifest back into the file paths it references."""
    paths = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line.startswith("file "):
                continue
            quoted = line[len("file ") :]
            if quoted.startswith("'") and quoted.endswith("'"):
                quoted = quoted[1:-1]
            paths.append(quoted.replace("'\\''", "'"))
    return paths
