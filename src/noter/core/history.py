"""History store: a bounded, most-recent-first log of submission outcomes."""

from __future__ import annotations

import asyncio
from pathlib import Path
from uuid import UUID

from noter.core.config import HISTORY_LIMIT
from noter.core.console import get_logger
from noter.core.models import HistoryEntry, HistoryStatus
from noter.core.result import PersistenceError
from noter.core.storage import read_records, write_records

logger = get_logger(__name__)


class HistoryStore:
    """Owns ``history.json``.

    All mutations go through one ``asyncio.Lock`` and are persisted before the
    call returns. Entries are never reordered: new ones go to the head and
    the tail is evicted beyond ``limit``.
    """

    def __init__(self, path: Path, *, limit: int = HISTORY_LIMIT) -> None:
        self._path = path
        self._limit = limit
        self._lock = asyncio.Lock()
        self._items: list[HistoryEntry] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def count(self) -> int:
        return len(self._items)

    def _load(self) -> list[HistoryEntry]:
        try:
            items = read_records(self._path, HistoryEntry)
        except PersistenceError as exc:
            logger.warning("History could not be decoded, starting empty: %s", exc)
            return []
        return items[: self._limit]

    async def _persist(self) -> None:
        snapshot = list(self._items)
        try:
            await asyncio.to_thread(write_records, self._path, snapshot)
        except PersistenceError as exc:
            logger.warning("History not saved: %s", exc)

    async def add(self, entry: HistoryEntry) -> None:
        async with self._lock:
            self._items.insert(0, entry)
            if len(self._items) > self._limit:
                del self._items[self._limit :]
            await self._persist()

    async def update_status(self, entry_id: UUID, status: HistoryStatus) -> bool:
        """Replace only the status of an entry, keeping its position. False if unknown."""
        async with self._lock:
            for index, item in enumerate(self._items):
                if item.id == entry_id:
                    self._items[index] = item.model_copy(update={"status": status})
                    await self._persist()
                    return True
            return False

    async def delete(self, entry_id: UUID) -> bool:
        async with self._lock:
            remaining = [item for item in self._items if item.id != entry_id]
            if len(remaining) == len(self._items):
                return False
            self._items = remaining
            await self._persist()
            return True

    async def clear_all(self) -> None:
        async with self._lock:
            self._items = []
            await self._persist()

    async def get_all(self) -> list[HistoryEntry]:
        async with self._lock:
            return list(self._items)

    async def get(self, entry_id: UUID) -> HistoryEntry | None:
        async with self._lock:
            return next((item for item in self._items if item.id == entry_id), None)

    async def add_processed(
        self, text: str, target_directory: str, output_preview: str | None = None
    ) -> HistoryEntry:
        entry = HistoryEntry(
            original_text=text,
            status=HistoryStatus.PROCESSED,
            target_directory=target_directory,
            output_preview=output_preview,
        )
        await self.add(entry)
        return entry

    async def add_failed(self, text: str, target_directory: str) -> HistoryEntry:
        entry = HistoryEntry(
            original_text=text,
            status=HistoryStatus.FAILED,
            target_directory=target_directory,
        )
        await self.add(entry)
        return entry


__all__ = ["HistoryStore"]
