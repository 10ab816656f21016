"""
ClipForge - timeline export toolkit.

Turns a multi-track timeline of trimmed media clips into a single rendered
file through a five-stage pipeline: timeline validation → clip trimming →
concat manifest → FFmpeg encode → scratch cleanup.
"""

__version__ = "0.1.0"
