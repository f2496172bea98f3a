"""Tests for persisted records and submission results."""

from __future__ import annotations

import datetime as dt
import json
from uuid import UUID

import pytest
from pydantic import ValidationError

from noter.core.config import MAX_RETRIES
from noter.core.models import (
    HistoryEntry,
    HistoryStatus,
    PendingSubmission,
    SubmissionResult,
    SubmissionStatus,
)


def _pending(**overrides) -> PendingSubmission:
    fields = {
        "note_text": "Buy milk",
        "target_directory": "/vault",
        "model_id": "m",
        "executable_path": "/bin/oc",
    }
    fields.update(overrides)
    return PendingSubmission(**fields)


class TestPendingSubmission:
    def test_defaults(self) -> None:
        item = _pending()

        assert isinstance(item.id, UUID)
        assert item.retry_count == 0
        assert item.last_error is None
        assert item.can_retry
        assert item.retry_status_text == "Pending"

    def test_serializes_with_camel_case_keys(self) -> None:
        item = _pending(created_at=dt.datetime(2025, 1, 2, 3, 4, 5))

        payload = json.loads(item.model_dump_json(by_alias=True))

        assert set(payload) == {
            "id",
            "noteText",
            "createdAt",
            "retryCount",
            "lastError",
            "targetDirectory",
            "modelId",
            "executablePath",
        }
        assert payload["createdAt"] == "2025-01-02T03:04:05"

    def test_default_created_at_is_utc(self) -> None:
        item = _pending()

        payload = json.loads(item.model_dump_json(by_alias=True))

        assert item.created_at.utcoffset() == dt.timedelta(0)
        assert payload["createdAt"].endswith("Z")

    def test_reads_camel_case_documents(self) -> None:
        raw = {
            "id": "6f1c8d2e-0000-4000-8000-000000000001",
            "noteText": "hello",
            "createdAt": "2025-01-02T03:04:05",
            "retryCount": 2,
            "lastError": "boom",
            "targetDirectory": "/v",
            "modelId": "m",
            "executablePath": "/bin/oc",
            "somethingNew": True,
        }

        item = PendingSubmission.model_validate(raw)

        assert item.retry_count == 2
        assert item.retry_status_text == f"Retry 2/{MAX_RETRIES}"

    def test_retry_count_is_bounded(self) -> None:
        with pytest.raises(ValidationError):
            _pending(retry_count=MAX_RETRIES + 1)

    def test_increment_keeps_identity_and_records_error(self) -> None:
        item = _pending()

        updated = item.with_incremented_retry("timeout")

        assert updated.id == item.id
        assert updated.retry_count == 1
        assert updated.last_error == "timeout"
        assert item.retry_count == 0

    def test_exhausted_after_max_retries(self) -> None:
        item = _pending()
        for _ in range(MAX_RETRIES + 2):
            item = item.with_incremented_retry("boom")

        assert item.retry_count == MAX_RETRIES
        assert not item.can_retry
        assert item.retry_status_text == "Failed permanently"

    def test_truncated_text_uses_first_line(self) -> None:
        item = _pending(note_text="x" * 80 + "\nsecond")

        assert item.truncated_text == "x" * 50 + "..."
        assert _pending(note_text="short\nrest").truncated_text == "short"


class TestHistoryEntry:
    def test_round_trip_through_json(self) -> None:
        entry = HistoryEntry(
            original_text="note",
            status=HistoryStatus.PROCESSED,
            target_directory="/v",
            output_preview="ok",
        )

        restored = HistoryEntry.model_validate_json(entry.model_dump_json(by_alias=True))

        assert restored == entry

    def test_status_serializes_as_lowercase_string(self) -> None:
        entry = HistoryEntry(original_text="n", status=HistoryStatus.QUEUED, target_directory="/v")

        assert json.loads(entry.model_dump_json(by_alias=True))["status"] == "queued"

    def test_truncated_text_is_sixty_chars(self) -> None:
        entry = HistoryEntry(
            original_text="y" * 70, status=HistoryStatus.FAILED, target_directory="/v"
        )

        assert entry.truncated_text == "y" * 60 + "..."

    def test_default_timestamp_is_utc(self) -> None:
        entry = HistoryEntry(original_text="n", status=HistoryStatus.QUEUED, target_directory="/v")

        payload = json.loads(entry.model_dump_json(by_alias=True))

        assert entry.timestamp.tzinfo is not None
        assert payload["timestamp"].endswith("Z")


def test_output_preview_is_first_hundred_characters() -> None:
    result = SubmissionResult(output="z" * 150, status=SubmissionStatus.COMPLETED)

    assert result.output_preview == "z" * 100
    assert result.succeeded
    assert not result.cancelled
