"""
clipforge.export - Timeline rendering.

Pipeline stages after validation:
- trim: extract sub-ranges of source media into scratch artifacts
- manifest: linearize clips into an FFmpeg concat demuxer list
- executor: run the concat encode and report progress
"""

from __future__ import annotations
