"""Queue processor: drains the retry queue one entry at a time.

Provides:
- QueueProcessor.drain(): one pass over every retryable entry, FIFO
- QueueProcessor.retry_item(): the same attempt for a single entry, out of band
- DrainReport: counters describing a pass

Only one drain pass runs at a time; a request that arrives mid-pass is a
no-op, and so is a single-entry retry. A retry already in flight finishes
before a pass starts. Failures never propagate out of a pass, they become retry-count
increments. After MAX_RETRIES failures the entry is marked failed in history
and left in the queue.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID

from noter.core.console import get_logger
from noter.core.history import HistoryStore
from noter.core.models import HistoryStatus, PendingSubmission, SubmissionResult
from noter.core.process import ProcessRunnerProtocol
from noter.core.queue import CountListener, QueueStore
from noter.core.result import Err, ExecutionError, NoterError, Ok, Result, SpawnError
from noter.core.submission import submit

logger = get_logger(__name__)

DEFAULT_RETRY_DELAY = 1.0

ProcessedListener = Callable[[int], None]


class ProcessorState(StrEnum):
    IDLE = "idle"
    DRAINING = "draining"


@dataclass(slots=True)
class DrainReport:
    attempted: int = 0
    processed: int = 0
    failed: int = 0
    exhausted: int = 0
    skipped: bool = False


class QueueProcessor:
    """Applies the retry policy to entries of a :class:`QueueStore`."""

    def __init__(
        self,
        queue: QueueStore,
        history: HistoryStore,
        *,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        runner: ProcessRunnerProtocol | None = None,
    ) -> None:
        self._queue = queue
        self._history = history
        self._retry_delay = retry_delay
        self._runner = runner
        self._state = ProcessorState.IDLE
        self._lock = asyncio.Lock()
        self._processed_listeners: list[ProcessedListener] = []

    @property
    def state(self) -> ProcessorState:
        return self._state

    @property
    def is_draining(self) -> bool:
        return self._state is ProcessorState.DRAINING

    def subscribe(self, listener: CountListener) -> Callable[[], None]:
        """Observe the queue size."""
        return self._queue.subscribe(listener)

    def on_processed(self, listener: ProcessedListener) -> Callable[[], None]:
        """Observe how many entries a drain pass delivered (only reported when > 0)."""
        self._processed_listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._processed_listeners:
                self._processed_listeners.remove(listener)

        return _unsubscribe

    async def _attempt(self, entry: PendingSubmission) -> Result[SubmissionResult, NoterError]:
        try:
            stream = await submit(
                entry.note_text,
                entry.target_directory,
                entry.executable_path,
                entry.model_id,
                runner=self._runner,
            )
        except SpawnError as exc:
            return Err(exc)

        try:
            async for _ in stream.chunks:
                pass
        except ExecutionError as exc:
            return Err(exc)

        result = await stream.result()
        if result.error is not None:
            return Err(NoterError(result.error))
        return Ok(result)

    async def _settle(
        self, entry: PendingSubmission, outcome: Result[SubmissionResult, NoterError]
    ) -> PendingSubmission | None:
        """Record the outcome in history. Returns None on success, else the updated entry."""
        match outcome:
            case Ok():
                logger.info("Delivered queued note %s", entry.id)
                await self._history.update_status(entry.id, HistoryStatus.PROCESSED)
                return None
            case Err(error):
                updated = entry.with_incremented_retry(str(error))
                logger.debug(
                    "Queued note %s failed (%s): %s", entry.id, updated.retry_status_text, error
                )
                if not updated.can_retry:
                    logger.info("Queued note %s failed permanently", entry.id)
                    await self._history.update_status(entry.id, HistoryStatus.FAILED)
                return updated

    async def _process_entry(self, entry: PendingSubmission) -> PendingSubmission | None:
        return await self._settle(entry, await self._attempt(entry))

    async def _pace(self) -> None:
        if self._retry_delay <= 0:
            return
        pause = asyncio.ensure_future(asyncio.sleep(self._retry_delay))
        try:
            await asyncio.shield(pause)
        except asyncio.CancelledError:
            # The pause always runs to completion; cancellation is honoured afterwards.
            await pause
            raise

    async def drain(self) -> DrainReport:
        """Attempt every retryable entry once, in insertion order."""
        if self._state is ProcessorState.DRAINING:
            logger.debug("Drain requested while draining; ignoring")
            return DrainReport(skipped=True)

        self._state = ProcessorState.DRAINING
        try:
            async with self._lock:
                return await self._drain_pass()
        finally:
            self._state = ProcessorState.IDLE

    async def _drain_pass(self) -> DrainReport:
        report = DrainReport()
        processed_ids: list[UUID] = []
        updated_entries: list[PendingSubmission] = []

        for entry in await self._queue.get_all():
            if not entry.can_retry:
                continue

            report.attempted += 1
            updated = await self._process_entry(entry)
            if updated is None:
                processed_ids.append(entry.id)
                report.processed += 1
            else:
                updated_entries.append(updated)
                report.failed += 1
                if not updated.can_retry:
                    report.exhausted += 1

            await self._pace()

        await self._queue.apply_pass(processed_ids, updated_entries)

        if processed_ids:
            for listener in list(self._processed_listeners):
                listener(len(processed_ids))

        logger.debug(
            "Drain pass: %d attempted, %d processed, %d failed",
            report.attempted,
            report.processed,
            report.failed,
        )
        return report

    async def retry_item(self, submission_id: UUID) -> bool:
        """Attempt one entry now. Returns True if it was delivered and removed.

        Refused (False, nothing attempted) while a drain pass is running; the
        pass would overwrite the entry when it folds its own outcomes back.
        """
        if self._state is ProcessorState.DRAINING:
            logger.debug("Retry of %s requested while draining; ignoring", submission_id)
            return False

        async with self._lock:
            entry = await self._queue.get(submission_id)
            if entry is None or not entry.can_retry:
                return False

            updated = await self._process_entry(entry)
            if updated is None:
                await self._queue.remove(submission_id)
                return True

            await self._queue.update(updated)
            return False


__all__ = ["DrainReport", "ProcessorState", "QueueProcessor"]
