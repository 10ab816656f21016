"""
clipforge.export.ffmpeg - Async FFmpeg process driver.

Runs one FFmpeg invocation, streaming its stderr line by line to a
callback while the process executes. FFmpeg rewrites its status line with
carriage returns, so both \\r and \\n end a line here. A watchdog timeout
and a cancellation token can both stop the process early.
"""

from __future__ import annotations

import asyncio
import codecs
import inspect
import re
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from typing import Any

from clipforge.exceptions import ExportCancelledError, ExportTimeoutError, ExternalToolError
from clipforge.export.progress import summarize_diagnostics
from clipforge.jobs import CancelToken
from clipforge.logging import logger

LINE_BREAK = re.compile(r"\r\n|\r|\n")

LineCallback = Callable[[str], "Awaitable[Any] | Any"]


async def iter_lines(stream: asyncio.StreamReader, chunk_size: int = 4096) -> AsyncIterator[str]:
    """Yield non-empty lines from a byte stream, splitting on \\r and \\n."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    while True:
        chunk = await stream.read(chunk_size)
        if not chunk:
            break
        buffer += decoder.decode(chunk)
        *complete, buffer = LINE_BREAK.split(buffer)
        for line in complete:
            if line:
                yield line
    buffer += decoder.decode(b"", final=True)
    if buffer:
        yield buffer


class FFmpegRunner:
    """Spawns FFmpeg and supervises it until exit, timeout or cancellation."""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        kill_grace_seconds: float = 5.0,
        poll_interval: float = 0.1,
        history_lines: int = 200,
    ) -> None:
        self.ffmpeg_path = ffmpeg_path
        self.kill_grace_seconds = kill_grace_seconds
        self.poll_interval = poll_interval
        self.history_lines = history_lines

    def command(self, args: Sequence[str]) -> list[str]:
        return [self.ffmpeg_path, "-nostdin", *args]

    async def run(
        self,
        args: Sequence[str],
        description: str = "run",
        on_line: LineCallback | None = None,
        timeout: float | None = None,
        cancel_token: CancelToken | None = None,
    ) -> list[str]:
        """Run FFmpeg with the given arguments.

        Args:
            args: Arguments after the binary name
            description: Short label used in logs and error messages
            on_line: Called (or awaited) with each stderr line as it arrives
            timeout: Watchdog limit in seconds; None waits indefinitely
            cancel_token: Terminates the process when cancelled

        Returns:
            The most recent stderr lines

        Raises:
            ExternalToolError: If FFmpeg cannot be spawned or exits non-zero
            ExportTimeoutError: If the watchdog expires
            ExportCancelledError: If the token is cancelled mid-run
        """
        cmd = self.command(args)
        logger.debug("FFmpeg %s: %s", description, " ".join(cmd))

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExternalToolError(f"Failed to execute {self.ffmpeg_path}: {e}") from e

        history: deque[str] = deque(maxlen=self.history_lines)

        async def pump() -> int:
            async for line in iter_lines(proc.stderr):
                history.append(line)
                if on_line is not None:
                    result = on_line(line)
                    if inspect.isawaitable(result):
                        await result
            return await proc.wait()

        pump_task = asyncio.ensure_future(pump())
        cancel_task = None
        watched = {pump_task}
        if cancel_token is not None:
            cancel_task = asyncio.ensure_future(cancel_token.wait(self.poll_interval))
            watched.add(cancel_task)

        try:
            done, _ = await asyncio.wait(
                watched, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
            if pump_task not in done:
                await self._terminate(proc)
                await self._drain(pump_task)
                if cancel_task is not None and cancel_task in done:
                    logger.info("FFmpeg %s cancelled", description)
                    raise ExportCancelledError("Export cancelled by user")
                diagnostics = summarize_diagnostics(history)
                raise ExportTimeoutError(
                    f"FFmpeg {description} timed out after {timeout}s",
                    diagnostics=diagnostics,
                )
            returncode = pump_task.result()
        finally:
            if cancel_task is not None:
                cancel_task.cancel()
                await self._drain(cancel_task)
            if proc.returncode is None:
                await self._terminate(proc)
                await self._drain(pump_task)

        if returncode != 0:
            diagnostics = summarize_diagnostics(history)
            logger.error("FFmpeg %s failed (exit %s): %s", description, returncode, diagnostics)
            raise ExternalToolError(
                f"FFmpeg {description} failed: {diagnostics or f'exit code {returncode}'}",
                returncode=returncode,
                diagnostics=diagnostics,
            )

        return list(history)

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """Stop FFmpeg, escalating to kill after the grace period."""
        if proc.returncode is not None:
            return
        try:
            proc.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.kill_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning("FFmpeg did not exit after terminate; killing pid %s", proc.pid)
            try:
                proc.kill()
            except ProcessLookupError:
                return
            await proc.wait()

    @staticmethod
    async def _drain(task: asyncio.Future) -> None:
        if not task.done():
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)
