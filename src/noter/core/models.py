"""Data models shared by the submission pipeline and its stores.

Persisted models serialize with camelCase keys and ISO-8601 UTC timestamps so
the on-disk documents read the same regardless of which writer produced them.
Commands convert to local time for display.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from noter.core.config import MAX_RETRIES

OUTPUT_PREVIEW_CHARS = 100


def _first_line(text: str, limit: int) -> str:
    lines = text.splitlines()
    first = lines[0] if lines else text
    if len(first) > limit:
        return first[:limit] + "..."
    return first


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class PendingSubmission(_Record):
    """A note waiting in the retry queue."""

    id: UUID = Field(default_factory=uuid4)
    note_text: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    retry_count: int = Field(default=0, ge=0, le=MAX_RETRIES)
    last_error: str | None = None
    target_directory: str
    model_id: str
    executable_path: str

    @property
    def can_retry(self) -> bool:
        return self.retry_count < MAX_RETRIES

    @property
    def truncated_text(self) -> str:
        return _first_line(self.note_text, 50)

    @property
    def retry_status_text(self) -> str:
        if self.retry_count == 0:
            return "Pending"
        if self.retry_count >= MAX_RETRIES:
            return "Failed permanently"
        return f"Retry {self.retry_count}/{MAX_RETRIES}"

    def with_incremented_retry(self, error: str | None = None) -> PendingSubmission:
        """Return a copy with one more recorded attempt and the latest error."""
        return self.model_copy(
            update={"retry_count": min(self.retry_count + 1, MAX_RETRIES), "last_error": error}
        )


class HistoryStatus(StrEnum):
    QUEUED = "queued"
    PROCESSED = "processed"
    FAILED = "failed"


class HistoryEntry(_Record):
    """One submission outcome in the activity log."""

    id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    original_text: str
    status: HistoryStatus
    target_directory: str
    output_preview: str | None = None

    @property
    def truncated_text(self) -> str:
        return _first_line(self.original_text, 60)


class SubmissionStatus(StrEnum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SubmissionResult(BaseModel):
    """Aggregate outcome of one submission, available once its chunks are drained.

    ``error`` is None only for a clean, uncancelled exit.
    """

    model_config = ConfigDict(frozen=True)

    output: str
    status: SubmissionStatus
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is SubmissionStatus.COMPLETED

    @property
    def cancelled(self) -> bool:
        return self.status is SubmissionStatus.CANCELLED

    @property
    def output_preview(self) -> str:
        return self.output[:OUTPUT_PREVIEW_CHARS]


__all__ = [
    "HistoryEntry",
    "HistoryStatus",
    "OUTPUT_PREVIEW_CHARS",
    "PendingSubmission",
    "SubmissionResult",
    "SubmissionStatus",
]
