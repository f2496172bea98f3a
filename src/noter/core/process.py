"""Process runner for the external formatting tool.

Provides:
- ProcessRunner: spawns an executable with piped stdout/stderr
- RunningProcess: incremental stdout reader, stderr accumulator and terminator
- ProcessOutcome: exit classification (completed, failed, cancelled)
- ProcessRunnerProtocol / RunningProcessProtocol for injecting fakes
"""

from __future__ import annotations

import asyncio
import codecs
import os
import signal
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Protocol

from noter.core.console import get_logger
from noter.core.result import SpawnError

logger = get_logger(__name__)

READ_SIZE = 4096
KILL_GRACE_SECONDS = 5.0


class ProcessStatus(StrEnum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class ProcessOutcome:
    """How a process terminated."""

    status: ProcessStatus
    exit_code: int | None
    stderr: str


class RunningProcessProtocol(Protocol):
    def stdout_chunks(self) -> AsyncIterator[str]: ...

    def terminate(self) -> bool: ...

    async def wait(self) -> ProcessOutcome: ...


class ProcessRunnerProtocol(Protocol):
    async def start(
        self, executable: str, args: Sequence[str], cwd: Path
    ) -> RunningProcessProtocol: ...


class RunningProcess:
    """A spawned process whose stdout is consumed incrementally.

    Stderr is drained by a background task so a chatty error stream can
    never block the child while stdout is being read.
    """

    def __init__(self, proc: asyncio.subprocess.Process, argv: Sequence[str]) -> None:
        self._proc = proc
        self._argv = list(argv)
        self._cancelled = False
        self._stderr_parts: list[str] = []
        self._stderr_task = asyncio.create_task(self._collect_stderr())

    @property
    def pid(self) -> int:
        return self._proc.pid

    async def _collect_stderr(self) -> None:
        if self._proc.stderr is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await self._proc.stderr.read(READ_SIZE)
            if not data:
                break
            self._stderr_parts.append(decoder.decode(data))
        self._stderr_parts.append(decoder.decode(b"", final=True))

    async def stdout_chunks(self) -> AsyncIterator[str]:
        """Yield decoded stdout text as soon as the pipe delivers it."""
        if self._proc.stdout is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await self._proc.stdout.read(READ_SIZE)
            if not data:
                break
            text = decoder.decode(data)
            if text:
                yield text
        tail = decoder.decode(b"", final=True)
        if tail:
            yield tail

    def _signal(self, signum: int) -> None:
        # The tool runs in its own session; signal the whole group so helpers it
        # spawned release the pipes too.
        if hasattr(os, "killpg"):
            os.killpg(self._proc.pid, signum)
        else:
            self._proc.send_signal(signum)

    def terminate(self) -> bool:
        """Request termination once. Returns False if already requested or exited."""
        if self._cancelled or self._proc.returncode is not None:
            return False
        try:
            self._signal(signal.SIGTERM)
        except ProcessLookupError:
            logger.debug("Process %s exited before SIGTERM was delivered", self.pid)
            return False
        self._cancelled = True
        logger.debug("Sent SIGTERM to %s (pid %s)", self._argv[0], self.pid)
        return True

    async def wait(self) -> ProcessOutcome:
        """Wait for exit and classify it. Escalates to SIGKILL after a cancelled grace period.

        A zero exit is completed even after terminate(): the signal reached a
        child that had already finished and was only waiting to be reaped.
        """
        if self._cancelled:
            try:
                exit_code = await asyncio.wait_for(self._proc.wait(), timeout=KILL_GRACE_SECONDS)
            except TimeoutError:
                logger.warning("Process %s ignored SIGTERM; killing", self.pid)
                try:
                    self._signal(signal.SIGKILL)
                except ProcessLookupError:
                    logger.debug("Process %s exited before SIGKILL", self.pid)
                exit_code = await self._proc.wait()
        else:
            exit_code = await self._proc.wait()

        await self._stderr_task
        stderr = "".join(self._stderr_parts)

        if self._cancelled and exit_code != 0:
            status = ProcessStatus.CANCELLED
        elif exit_code != 0:
            status = ProcessStatus.FAILED
        else:
            status = ProcessStatus.COMPLETED
        return ProcessOutcome(status=status, exit_code=exit_code, stderr=stderr)


class ProcessRunner:
    """Spawn executables directly (no shell) with piped output."""

    async def start(self, executable: str, args: Sequence[str], cwd: Path) -> RunningProcess:
        """Launch ``executable`` with ``args`` inside ``cwd``.

        Raises:
            SpawnError: if the working directory is missing or the executable
                cannot be started. Raised before any output is produced.
        """
        if not cwd.is_dir():
            raise SpawnError("Target directory not found", context={"cwd": str(cwd)})

        try:
            proc = await asyncio.create_subprocess_exec(
                executable,
                *args,
                cwd=cwd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except FileNotFoundError as exc:
            raise SpawnError("Executable not found", context={"path": executable}) from exc
        except PermissionError as exc:
            raise SpawnError("Executable is not runnable", context={"path": executable}) from exc
        except OSError as exc:
            raise SpawnError(
                "Failed to start executable", context={"path": executable, "error": str(exc)}
            ) from exc

        logger.debug("Started %s (pid %s) in %s", executable, proc.pid, cwd)
        return RunningProcess(proc, [executable, *args])


__all__ = [
    "ProcessOutcome",
    "ProcessRunner",
    "ProcessRunnerProtocol",
    "ProcessStatus",
    "RunningProcess",
    "RunningProcessProtocol",
]
