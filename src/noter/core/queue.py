"""Queue store: durable FIFO of submissions awaiting retry.

Entries keep their insertion order across drains and reloads. Entries that
exhausted their retries stay queued until removed by hand.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from pathlib import Path
from uuid import UUID

from noter.core.console import get_logger
from noter.core.history import HistoryStore
from noter.core.models import HistoryEntry, HistoryStatus, PendingSubmission
from noter.core.result import PersistenceError
from noter.core.storage import read_records, write_records

logger = get_logger(__name__)

CountListener = Callable[[int], None]


class QueueStore:
    """Owns ``queue.json``.

    One mutation at a time (``asyncio.Lock``); each is persisted before the
    call returns and then reported to count listeners.
    """

    def __init__(self, path: Path, history: HistoryStore) -> None:
        self._path = path
        self._history = history
        self._lock = asyncio.Lock()
        self._listeners: list[CountListener] = []
        self._items: list[PendingSubmission] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def count(self) -> int:
        return len(self._items)

    def _load(self) -> list[PendingSubmission]:
        try:
            return read_records(self._path, PendingSubmission)
        except PersistenceError as exc:
            logger.warning("Queue could not be decoded, starting empty: %s", exc)
            return []

    async def _persist(self) -> None:
        snapshot = list(self._items)
        try:
            await asyncio.to_thread(write_records, self._path, snapshot)
        except PersistenceError as exc:
            logger.warning("Queue not saved: %s", exc)

    # ------------------------------------------------------------------
    # Count observation
    # ------------------------------------------------------------------

    def subscribe(self, listener: CountListener) -> Callable[[], None]:
        """Register a count listener; it is called with the current count immediately.

        Returns a callable that unsubscribes the listener.
        """
        self._listeners.append(listener)
        listener(len(self._items))

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        current = len(self._items)
        for listener in list(self._listeners):
            listener(current)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def enqueue(self, submission: PendingSubmission) -> None:
        """Append to the tail and record a matching "queued" history entry."""
        async with self._lock:
            self._items.append(submission)
            await self._persist()
        self._notify()
        logger.info("Queued note %s (%d pending)", submission.id, self.count)

        await self._history.add(
            HistoryEntry(
                id=submission.id,
                timestamp=submission.created_at,
                original_text=submission.note_text,
                status=HistoryStatus.QUEUED,
                target_directory=submission.target_directory,
            )
        )

    async def remove(self, submission_id: UUID) -> bool:
        async with self._lock:
            remaining = [item for item in self._items if item.id != submission_id]
            if len(remaining) == len(self._items):
                return False
            self._items = remaining
            await self._persist()
        self._notify()
        return True

    async def clear(self) -> None:
        async with self._lock:
            self._items = []
            await self._persist()
        self._notify()

    async def update(self, submission: PendingSubmission) -> bool:
        """Replace an entry in place, keeping its position. False if it is gone."""
        async with self._lock:
            for index, item in enumerate(self._items):
                if item.id == submission.id:
                    self._items[index] = submission
                    await self._persist()
                    return True
            return False

    async def apply_pass(
        self,
        processed_ids: Iterable[UUID],
        updated: Iterable[PendingSubmission],
    ) -> None:
        """Fold the results of a drain pass in a single write.

        Entries enqueued while the pass ran are left untouched.
        """
        done = set(processed_ids)
        replacements = {item.id: item for item in updated}
        async with self._lock:
            self._items = [
                replacements.get(item.id, item) for item in self._items if item.id not in done
            ]
            await self._persist()
        self._notify()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_all(self) -> list[PendingSubmission]:
        async with self._lock:
            return list(self._items)

    async def get(self, submission_id: UUID) -> PendingSubmission | None:
        async with self._lock:
            return next((item for item in self._items if item.id == submission_id), None)


__all__ = ["CountListener", "QueueStore"]
