"""Submission stream: one cancellable opencode invocation for one note.

``submit()`` spawns the tool and returns a :class:`SubmissionStream`:

    stream = await submit("Buy milk", "/vault", "/usr/local/bin/opencode", "opencode/big-pickle")
    async for chunk in stream.chunks:
        console.print(chunk, end="")
    result = await stream.result()

The chunk iterator must be drained for ``result()`` to resolve; the child
blocks once its stdout pipe fills. Callers that only want the aggregate
outcome use :meth:`SubmissionStream.collect`.

Cancellation is not an exception: a cancelled stream ends its chunks normally
and resolves to a result whose status is ``cancelled``.
"""

from __future__ import annotations

import asyncio
import datetime as dt
from collections.abc import AsyncIterator, Awaitable, Callable
from pathlib import Path

from noter.core.console import get_logger
from noter.core.models import SubmissionResult, SubmissionStatus
from noter.core.process import (
    ProcessRunner,
    ProcessRunnerProtocol,
    ProcessStatus,
    RunningProcessProtocol,
)
from noter.core.prompting import build_arguments, render_prompt
from noter.core.result import ExecutionError

logger = get_logger(__name__)

CANCELLED_MESSAGE = "Cancelled"

CompletionHook = Callable[[SubmissionResult], Awaitable[None]]


class OperationHandle:
    """Cancellation token bound to exactly one running process."""

    def __init__(self, process: RunningProcessProtocol) -> None:
        self._process = process
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Terminate the process. Safe to call repeatedly and after exit."""
        if self._process.terminate():
            self._cancelled = True


class SubmissionStream:
    """Single-consumer chunk sequence plus a deferred final result."""

    def __init__(
        self,
        process: RunningProcessProtocol,
        *,
        on_complete: CompletionHook | None = None,
    ) -> None:
        self._process = process
        self._on_complete = on_complete
        self._output: list[str] = []
        self._consumed = False
        self._error: ExecutionError | None = None
        self._result: asyncio.Future[SubmissionResult] = (
            asyncio.get_running_loop().create_future()
        )
        self.handle = OperationHandle(process)

    @property
    def chunks(self) -> AsyncIterator[str]:
        """The output fragments, in arrival order. May be iterated only once."""
        if self._consumed:
            raise RuntimeError("Submission chunks can only be consumed once")
        self._consumed = True
        return self._iterate()

    def __aiter__(self) -> AsyncIterator[str]:
        return self.chunks

    async def _iterate(self) -> AsyncIterator[str]:
        drained = False
        try:
            async for text in self._process.stdout_chunks():
                self._output.append(text)
                yield text
            drained = True
        finally:
            if not drained:
                # Consumer stopped early or the read failed; never leave the child running.
                self._process.terminate()
                await self._settle()

        await self._settle()
        if self._error is not None:
            raise self._error

    async def _settle(self) -> SubmissionResult:
        if self._result.done():
            return self._result.result()

        outcome = await self._process.wait()
        output = "".join(self._output)

        match outcome.status:
            case ProcessStatus.COMPLETED:
                result = SubmissionResult(output=output, status=SubmissionStatus.COMPLETED)
            case ProcessStatus.CANCELLED:
                result = SubmissionResult(
                    output=output, status=SubmissionStatus.CANCELLED, error=CANCELLED_MESSAGE
                )
            case _:
                self._error = ExecutionError(outcome.stderr, exit_code=outcome.exit_code)
                result = SubmissionResult(
                    output=output, status=SubmissionStatus.FAILED, error=str(self._error)
                )

        logger.debug("Submission finished: %s (exit %s)", result.status, outcome.exit_code)
        self._result.set_result(result)
        if self._on_complete is not None:
            await self._on_complete(result)
        return result

    async def result(self) -> SubmissionResult:
        """Resolve to the aggregate outcome once ``chunks`` has been drained."""
        return await asyncio.shield(self._result)

    async def collect(self) -> SubmissionResult:
        """Drain and discard the chunks, then return the result."""
        try:
            async for _ in self.chunks:
                pass
        except ExecutionError:
            pass  # reported through the result
        return await self.result()


async def submit(
    note_text: str,
    target_directory: str | Path,
    executable_path: str,
    model_id: str,
    *,
    runner: ProcessRunnerProtocol | None = None,
    on_complete: CompletionHook | None = None,
    now: dt.datetime | None = None,
) -> SubmissionStream:
    """Start one submission.

    Raises:
        SpawnError: the executable or target directory is unusable. Raised
            before any chunk is produced.
    """
    prompt = render_prompt(note_text, now)
    process = await (runner or ProcessRunner()).start(
        executable_path,
        build_arguments(model_id, prompt),
        Path(target_directory),
    )
    return SubmissionStream(process, on_complete=on_complete)


__all__ = [
    "CANCELLED_MESSAGE",
    "CompletionHook",
    "OperationHandle",
    "SubmissionStream",
    "submit",
]
