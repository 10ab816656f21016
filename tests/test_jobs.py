"""Tests for clipforge.jobs module."""

from __future__ import annotations

import asyncio
import threading

import pytest

from clipforge.exceptions import ExportCancelledError
from clipforge.jobs import CancelToken, ExportRegistry
from clipforge.models import ExportProgress, ExportResult, ExportStep


class TestCancelToken:
    def test_initially_not_cancelled(self) -> None:
        token = CancelToken()
        assert token.cancelled is False
        token.raise_if_cancelled()

    def test_cancel(self) -> None:
        token = CancelToken()
        token.cancel()
        assert token.cancelled is True
        with pytest.raises(ExportCancelledError):
            token.raise_if_cancelled()

    def test_wait_returns_after_cancel_from_thread(self) -> None:
        token = CancelToken()
        timer = threading.Timer(0.05, token.cancel)
        timer.start()
        asyncio.run(asyncio.wait_for(token.wait(poll_interval=0.01), timeout=2))
        assert token.cancelled


class TestExportRegistry:
    def test_create_assigns_id(self) -> None:
        registry = ExportRegistry()
        job, token = registry.create()
        assert job.id
        assert job.status == ExportStep.IDLE
        assert not token.cancelled

    def test_unknown_job_reports_idle(self) -> None:
        status = ExportRegistry().status("nope")
        assert status.current_step == ExportStep.IDLE
        assert status.progress == 0.0

    def test_update_and_status(self) -> None:
        registry = ExportRegistry()
        registry.create("job-1")
        registry.update(
            "job-1", ExportProgress(progress=42.0, current_step=ExportStep.EXPORTING)
        )
        status = registry.status("job-1")
        assert status.current_step == ExportStep.EXPORTING
        assert status.progress == 42.0

    def test_finish_completed(self) -> None:
        registry = ExportRegistry()
        registry.create("job-1")
        registry.finish(
            "job-1",
            ExportResult(success=True, output_path="/out/final.mp4"),
            ExportStep.COMPLETED,
        )
        job = registry.get("job-1")
        assert job is not None
        assert job.status == ExportStep.COMPLETED
        assert job.progress == 100.0
        assert job.output_path == "/out/final.mp4"

    def test_cancel_running_job(self) -> None:
        registry = ExportRegistry()
        _, token = registry.create("job-1")
        assert registry.cancel("job-1") is True
        assert token.cancelled

    def test_cancel_finished_job_refused(self) -> None:
        registry = ExportRegistry()
        _, token = registry.create("job-1")
        registry.finish("job-1", ExportResult(success=False), ExportStep.FAILED)
        assert registry.cancel("job-1") is False
        assert not token.cancelled

    def test_pre_cancelled_job_keeps_token(self) -> None:
        registry = ExportRegistry()
        assert registry.cancel("later") is True
        _, token = registry.create("later")
        assert token.cancelled

    def test_reused_id_gets_fresh_token(self) -> None:
        registry = ExportRegistry()
        registry.cancel("job-1")
        _, first = registry.create("job-1")
        registry.finish("job-1", ExportResult(success=False), ExportStep.CANCELLED)

        job, second = registry.create("job-1")

        assert first.cancelled
        assert not second.cancelled
        assert job.status == ExportStep.IDLE

    def test_running_id_cannot_be_reused(self) -> None:
        registry = ExportRegistry()
        registry.create("job-1")
        with pytest.raises(ValueError, match="already running"):
            registry.create("job-1")

    def test_finished_jobs_evicted_oldest_first(self) -> None:
        registry = ExportRegistry(max_finished_jobs=2)
        for job_id in ("a", "b", "c"):
            registry.create(job_id)
            registry.finish(job_id, ExportResult(success=True), ExportStep.COMPLETED)

        assert registry.get("a") is None
        assert registry.status("a").current_step == ExportStep.IDLE
        assert registry.get("b") is not None
        assert registry.get("c") is not None

    def test_running_jobs_never_evicted(self) -> None:
        registry = ExportRegistry(max_finished_jobs=1)
        registry.create("running")
        for job_id in ("a", "b"):
            registry.create(job_id)
            registry.finish(job_id, ExportResult(success=False), ExportStep.FAILED)

        assert registry.get("running") is not None
        assert registry.get("a") is None
        assert registry.get("b") is not None

    def test_get_returns_copy(self) -> None:
        registry = ExportRegistry()
        registry.create("job-1")
        job = registry.get("job-1")
        job.progress = 99.0
        assert registry.get("job-1").progress == 0.0
