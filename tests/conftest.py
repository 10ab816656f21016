"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

import stat
import sys
from collections.abc import Callable
from pathlib import Path

import pytest
import yaml

from clipforge.config import ClipForgeConfig
from clipforge.exceptions import ExternalToolError
from clipforge.models import Clip

FAKE_FFMPEG = """#!{python}
import os
import sys
import time

args = sys.argv[1:]
mode = os.environ.get("FAKE_FFMPEG_MODE", "")
output = args[-1]

sys.stderr.write("ffmpeg version 6.0-fake Copyright (c) 2000-2023 the FFmpeg developers\\n")
sys.stderr.write("  configuration: --enable-gpl --enable-libx264\\n")
sys.stderr.flush()

if "concat" in args:
    manifest = args[args.index("-i") + 1]
    with open(manifest) as f:
        content = f.read()
    if mode == "fail-concat":
        sys.stderr.write("[concat @ 0x1] Impossible to open 'missing.mp4'\\n")
        sys.exit(1)
    with open(output, "w") as f:
        f.write(content)
    if mode == "hang":
        time.sleep(30)
    sys.stderr.write(
        "frame=  150 fps=30.0 q=-1.0 size=512kB time=00:00:05.00 "
        "bitrate=838.9kbits/s speed=2.0x\\r"
    )
    sys.stderr.write(
        "frame=  390 fps=30.0 q=-1.0 Lsize=1024kB time=00:00:13.00 "
        "bitrate=645.3kbits/s speed=2.0x\\n"
    )
    sys.exit(0)

if mode == "fail-trim":
    sys.stderr.write("Invalid data found when processing input\\n")
    sys.exit(1)

with open(output, "w") as f:
    f.write("trimmed " + " ".join(args))
sys.exit(0)
"""


@pytest.fixture
def fake_ffmpeg(tmp_path: Path) -> Path:
    """Write an executable stand-in for ffmpeg.

    Trim invocations write their arguments to the output file; concat
    invocations copy the manifest text into the output and print two
    progress lines. FAKE_FFMPEG_MODE selects failure modes.
    """
    script = tmp_path / "bin" / "ffmpeg"
    script.parent.mkdir()
    script.write_text(FAKE_FFMPEG.format(python=sys.executable))
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def scratch_dir(tmp_path: Path) -> Path:
    return tmp_path / "scratch"


@pytest.fixture
def config(fake_ffmpeg: Path, scratch_dir: Path) -> ClipForgeConfig:
    return ClipForgeConfig(ffmpeg_path=str(fake_ffmpeg), temp_dir=scratch_dir)


@pytest.fixture
def media_dir(tmp_path: Path) -> Path:
    """Directory holding placeholder source media files."""
    media = tmp_path / "media"
    media.mkdir()
    for name in ("a.mp4", "b.mp4", "c.avi"):
        (media / name).write_bytes(b"fake media")
    return media


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    out = tmp_path / "out"
    out.mkdir()
    return out


@pytest.fixture
def make_clip() -> Callable[..., Clip]:
    """Factory for clips with sensible untrimmed defaults."""

    def _make(
        file_path: str = "/media/a.mp4",
        start_time: float = 0.0,
        duration: float = 10.0,
        trim_start: float = 0.0,
        trim_end: float | None = None,
        track_id: str = "t1",
        **extra,
    ) -> Clip:
        return Clip(
            file_path=file_path,
            start_time=start_time,
            duration=duration,
            trim_start=trim_start,
            trim_end=trim_start + duration if trim_end is None else trim_end,
            track_id=track_id,
            **extra,
        )

    return _make


class FakeRunner:
    """In-process FFmpegRunner replacement recording every invocation."""

    def __init__(self, fail_on: str | None = None, lines: tuple[str, ...] = ()) -> None:
        self.fail_on = fail_on
        self.lines = lines
        self.calls: list[list[str]] = []
        self.descriptions: list[str] = []

    async def run(self, args, description="run", on_line=None, timeout=None, cancel_token=None):
        self.calls.append(list(args))
        self.descriptions.append(description)
        if self.fail_on and self.fail_on in description:
            raise ExternalToolError(
                f"FFmpeg {description} failed: boom", returncode=1, diagnostics="boom"
            )
        Path(args[-1]).write_text("fake output")
        for line in self.lines:
            if on_line is not None:
                await on_line(line)
        return list(self.lines)


@pytest.fixture
def fake_runner() -> Callable[..., FakeRunner]:
    return FakeRunner


@pytest.fixture
def timeline_file(tmp_path: Path, media_dir: Path, output_dir: Path) -> Path:
    """A YAML timeline document with one untrimmed and one trimmed clip."""
    document = {
        "output_dir": str(output_dir),
        "filename": "final",
        "settings": {"resolution": "720p", "quality": "low"},
        "clips": [
            {
                "file_path": "media/a.mp4",
                "start_time": 0,
                "duration": 10,
                "trim_start": 0,
                "trim_end": 10,
                "track_id": "t1",
            },
            {
                "file_path": "media/b.mp4",
                "start_time": 10,
                "duration": 3,
                "trim_start": 2,
                "trim_end": 5,
                "track_id": "t1",
            },
        ],
    }
    path = tmp_path / "timeline.yaml"
    with open(path, "w") as f:
        yaml.dump(document, f)
    return path
