"""Locate the opencode executable."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

EXECUTABLE_NAME = "opencode"


def common_paths() -> list[Path]:
    home = Path.home()
    return [
        Path("/opt/homebrew/bin") / EXECUTABLE_NAME,
        Path("/usr/local/bin") / EXECUTABLE_NAME,
        home / ".local" / "bin" / EXECUTABLE_NAME,
        home / "bin" / EXECUTABLE_NAME,
        Path("/usr/bin") / EXECUTABLE_NAME,
    ]


def is_executable(path: str | Path) -> bool:
    candidate = Path(path)
    return candidate.is_file() and os.access(candidate, os.X_OK)


def detect_executable(candidates: list[Path] | None = None) -> str | None:
    """Return the first usable opencode binary: PATH lookup first, then common locations."""
    found = shutil.which(EXECUTABLE_NAME)
    if found and is_executable(found):
        return found
    for candidate in candidates if candidates is not None else common_paths():
        if is_executable(candidate):
            return str(candidate)
    return None


__all__ = ["common_paths", "detect_executable", "is_executable"]
