"""Whole-document JSON persistence for the queue and history stores.

Each store owns one JSON file holding a list of records. Every mutation
rewrites the entire list through a temp file, fsync and ``os.replace`` so a
reader never observes a partially written document.
"""

from __future__ import annotations

import json
import os
from collections.abc import Sequence
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from noter.core.result import PersistenceError

M = TypeVar("M", bound=BaseModel)


def write_records(path: Path, records: Sequence[BaseModel]) -> None:
    """Atomically rewrite ``path`` with ``records`` as a JSON list."""
    payload = [record.model_dump(mode="json", by_alias=True) for record in records]
    temp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with temp_path.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2, ensure_ascii=False)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(temp_path, path)
    except (OSError, TypeError, ValueError) as exc:
        raise PersistenceError(
            "Failed to write store", context={"path": str(path), "error": str(exc)}
        ) from exc


def read_records(path: Path, model: type[M]) -> list[M]:
    """Load a JSON list of ``model`` records. A missing file is an empty list."""
    if not path.exists():
        return []
    try:
        raw = path.read_bytes()
        return TypeAdapter(list[model]).validate_json(raw)  # type: ignore[valid-type]
    except (OSError, ValidationError) as exc:
        raise PersistenceError(
            "Failed to read store", context={"path": str(path), "error": str(exc)}
        ) from exc


__all__ = ["read_records", "write_records"]
