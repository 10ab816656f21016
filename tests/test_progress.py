"""Tests for clipforge.export.progress module."""

from __future__ import annotations

import pytest

from clipforge.export.progress import parse_progress_line, summarize_diagnostics
from clipforge.models import ExportStep

STATUS_LINE = (
    "frame= 1234 fps= 30 q=-1.0 size= 5120kB time=00:00:41.13 "
    "bitrate=1019.7kbits/s speed=1.0x"
)


class TestParseProgressLine:
    def test_full_status_line(self) -> None:
        event = parse_progress_line(STATUS_LINE, total_duration=60.0)
        assert event is not None
        assert event.current_step == ExportStep.EXPORTING
        assert event.progress == pytest.approx(68.55, abs=0.01)
        assert event.frame == 1234
        assert event.fps == 30.0
        assert event.bitrate == pytest.approx(1019.7)
        assert event.speed == 1.0
        assert event.elapsed_time == pytest.approx(41.13)
        assert event.estimated_time_remaining == pytest.approx(18.87, abs=0.01)

    def test_progress_at_end_is_exactly_100(self) -> None:
        event = parse_progress_line("time=00:01:00.00 speed=2x", total_duration=60.0)
        assert event.progress == 100.0
        assert event.estimated_time_remaining == 0.0

    def test_progress_clamped_when_past_end(self) -> None:
        event = parse_progress_line("time=00:01:05.00", total_duration=60.0)
        assert event.progress == 100.0

    def test_negative_time_clamped_to_zero(self) -> None:
        event = parse_progress_line("time=-00:00:00.05 speed=N/A", total_duration=60.0)
        assert event.progress == 0.0
        assert event.speed is None

    def test_zero_total_duration(self) -> None:
        event = parse_progress_line("time=00:00:10.00", total_duration=0.0)
        assert event.progress == 0.0

    def test_missing_optional_fields(self) -> None:
        event = parse_progress_line("size=256kB time=00:00:30.00", total_duration=60.0)
        assert event.progress == 50.0
        assert event.frame is None
        assert event.fps is None
        assert event.bitrate is None
        assert event.estimated_time_remaining == 0.0

    @pytest.mark.parametrize(
        "line",
        [
            "ffmpeg version 6.0 Copyright (c) 2000-2023 the FFmpeg developers",
            "Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'a.mp4':",
            "  Duration: 00:00:10.00, start: 0.000000, bitrate: 1205 kb/s",
            "",
        ],
    )
    def test_non_status_lines(self, line: str) -> None:
        assert parse_progress_line(line, total_duration=60.0) is None

    def test_remaining_uses_speed(self) -> None:
        event = parse_progress_line("time=00:00:20.00 speed=4.0x", total_duration=60.0)
        assert event.estimated_time_remaining == pytest.approx(10.0)


class TestSummarizeDiagnostics:
    def test_strips_banner(self) -> None:
        lines = [
            "ffmpeg version 6.0 Copyright (c) 2000-2023 the FFmpeg developers",
            "  built with gcc 12",
            "  configuration: --enable-gpl --enable-libx264",
            "  libavutil      58.  2.100 / 58.  2.100",
            "[concat @ 0x1] Impossible to open 'missing.mp4'",
            "concat.txt: No such file or directory",
        ]
        summary = summarize_diagnostics(lines)
        assert summary.splitlines() == [
            "[concat @ 0x1] Impossible to open 'missing.mp4'",
            "concat.txt: No such file or directory",
        ]

    def test_keeps_tail(self) -> None:
        lines = [f"error line {i}" for i in range(40)]
        summary = summarize_diagnostics(lines, max_lines=3)
        assert summary.splitlines() == ["error line 37", "error line 38", "error line 39"]

    def test_empty(self) -> None:
        assert summarize_diagnostics([]) == ""
