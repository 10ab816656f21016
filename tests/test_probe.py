"""Tests for clipforge.probe module."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path

import pytest

from clipforge import probe
from clipforge.exceptions import ProbeError
from clipforge.probe import attach_source_durations, probe_duration, read_format

FFPROBE_OUTPUT = {
    "streams": [{"codec_type": "video", "codec_name": "h264"}],
    "format": {"duration": "12.480000", "format_name": "mov,mp4,m4a"},
}


def _ffprobe_prints(monkeypatch: pytest.MonkeyPatch, output: dict) -> None:
    monkeypatch.setattr(
        probe.subprocess,
        "run",
        lambda cmd, **kwargs: subprocess.CompletedProcess(
            cmd, 0, stdout=json.dumps(output), stderr=""
        ),
    )


@pytest.fixture
def fake_ffprobe(monkeypatch: pytest.MonkeyPatch):
    calls: list[list[str]] = []

    def run(cmd, **kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout=json.dumps(FFPROBE_OUTPUT), stderr="")

    monkeypatch.setattr(probe.subprocess, "run", run)
    return calls


class TestProbeDuration:
    def test_reads_container_duration(self, fake_ffprobe) -> None:
        assert probe_duration(Path("/media/a.mp4")) == pytest.approx(12.48)
        assert fake_ffprobe[0][0] == "ffprobe"
        assert "-show_format" in fake_ffprobe[0]
        assert fake_ffprobe[0][-1] == "/media/a.mp4"

    def test_read_format_returns_container_section(self, fake_ffprobe) -> None:
        assert read_format(Path("/media/a.mp4"))["format_name"] == "mov,mp4,m4a"

    def test_non_zero_exit(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            probe.subprocess,
            "run",
            lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 1, stdout="", stderr="bad"),
        )
        with pytest.raises(ProbeError, match="ffprobe failed"):
            probe_duration(Path("/media/a.mp4"))

    def test_missing_binary(self, tmp_path: Path) -> None:
        with pytest.raises(ProbeError, match="Failed to execute"):
            probe_duration(tmp_path / "a.mp4", ffprobe=str(tmp_path / "no-ffprobe"))

    @pytest.mark.parametrize("fmt", [{}, {"duration": "0"}, {"duration": "nan"}, {"duration": "inf"}])
    def test_missing_or_bad_duration_rejected(
        self, monkeypatch: pytest.MonkeyPatch, fmt: dict
    ) -> None:
        _ffprobe_prints(monkeypatch, {"streams": [], "format": fmt})
        with pytest.raises(ProbeError, match="no duration"):
            probe_duration(Path("/media/a.mp4"))

    def test_unreadable_duration_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _ffprobe_prints(monkeypatch, {"format": {"duration": "N/A"}})
        with pytest.raises(ProbeError, match="unreadable duration"):
            probe_duration(Path("/media/a.mp4"))


class TestAttachSourceDurations:
    def test_probes_each_file_once(self, fake_ffprobe, make_clip) -> None:
        clips = [
            make_clip(file_path="/media/a.mp4", start_time=0, duration=2, trim_end=2),
            make_clip(file_path="/media/a.mp4", start_time=2, duration=2, trim_start=4, trim_end=6),
            make_clip(file_path="/media/b.mp4", start_time=4, duration=2, source_duration=30.0),
        ]
        result = attach_source_durations(clips)

        assert [clip.source_duration for clip in result] == [
            pytest.approx(12.48),
            pytest.approx(12.48),
            30.0,
        ]
        assert len(fake_ffprobe) == 1
        assert clips[0].source_duration is None
