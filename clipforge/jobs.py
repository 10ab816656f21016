"""
clipforge.jobs - Export job registry and cancellation tokens.

The registry is an ordinary object: construct one per host process (or per
test) and pass it to whichever executors and commands need it. Its job map
is shared between concurrent export tasks and possibly threads, so every
access goes through a lock. Finished jobs are kept for status queries up to
a fixed count, oldest evicted first.
"""

from __future__ import annotations

import asyncio
import threading
import uuid

from clipforge.exceptions import ExportCancelledError
from clipforge.models import ExportJob, ExportProgress, ExportResult, ExportStep

MAX_FINISHED_JOBS = 100


class CancelToken:
    """Thread-safe cancellation flag checked between pipeline stages."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ExportCancelledError("Export cancelled by user")

    async def wait(self, poll_interval: float = 0.1) -> None:
        """Return once cancel() has been called."""
        while not self._event.is_set():
            await asyncio.sleep(poll_interval)


class ExportRegistry:
    """Tracks export attempts so they can be queried and cancelled."""

    def __init__(self, max_finished_jobs: int = MAX_FINISHED_JOBS) -> None:
        self.max_finished_jobs = max_finished_jobs
        self._lock = threading.Lock()
        self._jobs: dict[str, ExportJob] = {}
        self._tokens: dict[str, CancelToken] = {}

    def create(self, job_id: str | None = None) -> tuple[ExportJob, CancelToken]:
        """Register a new attempt and hand back its cancellation token.

        A job id that was cancelled before any attempt registered keeps its
        cancelled token, so the attempt stops before doing any work. Reusing
        the id of a finished attempt always starts with a fresh token.

        Raises:
            ValueError: If an attempt with this id is still running
        """
        job_id = job_id or uuid.uuid4().hex
        with self._lock:
            previous = self._jobs.get(job_id)
            if previous is not None and not previous.status.is_terminal:
                raise ValueError(f"Export job {job_id} is already running")
            pending = None if previous is not None else self._tokens.get(job_id)
            token = pending or CancelToken()
            job = ExportJob(id=job_id, status=ExportStep.IDLE)
            self._jobs.pop(job_id, None)
            self._jobs[job_id] = job
            self._tokens[job_id] = token
        return job, token

    def update(self, job_id: str, event: ExportProgress) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            job.status = event.current_step
            job.progress = event.progress
            if event.error:
                job.error_message = event.error

    def finish(self, job_id: str, result: ExportResult, status: ExportStep) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            job.status = status
            job.output_path = result.output_path
            job.error_message = result.error_message
            if status == ExportStep.COMPLETED:
                job.progress = 100.0
            self._tokens.pop(job_id, None)
            self._evict_finished(keep=job_id)

    def _evict_finished(self, keep: str) -> None:
        finished = [
            job_id
            for job_id, job in self._jobs.items()
            if job.status.is_terminal and job_id != keep
        ]
        excess = len(finished) + 1 - self.max_finished_jobs
        for job_id in finished[: max(excess, 0)]:
            del self._jobs[job_id]

    def cancel(self, job_id: str) -> bool:
        """Request cancellation of a running job, or pre-cancel a future one.

        Returns:
            True if the job was running or not yet known, False if it had
            already finished
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is not None and job.status.is_terminal:
                return False
            token = self._tokens.setdefault(job_id, CancelToken())
        token.cancel()
        return True

    def get(self, job_id: str) -> ExportJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy() if job is not None else None

    def status(self, job_id: str) -> ExportProgress:
        """Current progress of a job; unknown jobs report Idle."""
        job = self.get(job_id)
        if job is None:
            return ExportProgress(progress=0.0, current_step=ExportStep.IDLE)
        return ExportProgress(
            progress=job.progress,
            current_step=job.status,
            error=job.error_message,
        )
