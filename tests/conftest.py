from __future__ import annotations

import os
import stat
import sys
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console
from typer.testing import CliRunner

# Detect CI environment (GitHub Actions sets CI=true)
IS_CI = os.environ.get("CI", "").lower() == "true"


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "local_only: marks tests that require local environment (skip in CI)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip local_only tests when running in CI."""
    if not IS_CI:
        return
    skip_ci = pytest.mark.skip(reason="Skipped in CI (requires local environment)")
    for item in items:
        if "local_only" in item.keywords:
            item.add_marker(skip_ci)


ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def isolate_config(tmp_path: Path, monkeypatch: Any) -> Path:
    """Point config and data files at temp paths so tests don't touch user state."""
    cfg_path = tmp_path / "config.toml"
    monkeypatch.setenv("NOTER_CONFIG", str(cfg_path))
    monkeypatch.setenv("NOTER_USER__DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("NOTER_QUEUE__RETRY_DELAY", "0")
    return cfg_path


@pytest.fixture(autouse=True)
def capture_console(monkeypatch: Any) -> Console:
    """Use an in-memory Rich console during tests."""
    test_console = Console(record=True, width=200)
    import noter.commands._shared as shared_cmd
    import noter.commands.history as history_cmd
    import noter.commands.note as note_cmd
    import noter.commands.queue as queue_cmd
    import noter.commands.templates as templates_cmd
    import noter.core.console as core_console
    import noter.main as noter_main

    for module in (
        core_console,
        noter_main,
        shared_cmd,
        history_cmd,
        note_cmd,
        queue_cmd,
        templates_cmd,
    ):
        monkeypatch.setattr(module, "console", test_console)
    return test_console


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "data"
    path.mkdir(exist_ok=True)
    return path


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    """A target directory for submissions."""
    path = tmp_path / "vault"
    path.mkdir()
    return path


@pytest.fixture
def make_script(tmp_path: Path):
    """Write an executable /bin/sh script and return its path."""

    def _make(name: str, body: str) -> Path:
        script = tmp_path / name
        script.write_text("#!/bin/sh\n" + body, encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return _make
