from __future__ import annotations

import logging
import signal
from dataclasses import dataclass, field
from pathlib import Path
from time import perf_counter
from types import FrameType

import typer
from rich import box
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .core.config import HISTORY_LIMIT, MAX_RETRIES, AppConfig, ConfigLoadResult, load_config
from .core.console import console, setup_logging
from .core.registry import discover_commands
from .core.services import NoterServices, build_services

app = typer.Typer(help="noter: capture notes and let opencode file them into your daily note.")
logger = logging.getLogger(__name__)


class ApplicationLifecycle:
    """Owns the service container for one CLI invocation and its shutdown."""

    def __init__(self) -> None:
        self._services: NoterServices | None = None
        self._shutdown_requested: bool = False

    def establish_services(self, config: AppConfig) -> NoterServices:
        self._services = build_services(config)
        return self._services

    def close(self) -> None:
        if self._services is not None:
            self._services.close()
            self._services = None

    def handle_shutdown(self, signum: int, frame: FrameType | None) -> None:
        """Handle SIGTERM: queued state is already on disk, so exit right away."""
        if self._shutdown_requested:
            raise SystemExit(128 + signum)
        self._shutdown_requested = True
        console.print("\n[yellow]Shutting down...[/yellow]")
        self.close()
        raise SystemExit(128 + signum)

    def register_signal_handlers(self) -> None:
        signal.signal(signal.SIGTERM, self.handle_shutdown)


@dataclass
class AppState:
    config: AppConfig
    config_meta: ConfigLoadResult
    logger: logging.Logger
    services: NoterServices = field(default=None)  # type: ignore[assignment]
    lifecycle: ApplicationLifecycle = field(default=None)  # type: ignore[assignment]


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to a noter config file (TOML or JSON)."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    loaded_config, meta = load_config(config_path=config)
    logger = setup_logging(level=loaded_config.user.log_level, verbose=verbose)

    lifecycle = ApplicationLifecycle()
    services = lifecycle.establish_services(loaded_config)
    lifecycle.register_signal_handlers()
    ctx.call_on_close(lifecycle.close)

    ctx.obj = AppState(
        config=loaded_config,
        config_meta=meta,
        logger=logger,
        services=services,
        lifecycle=lifecycle,
    )

    if meta.error:
        console.print(
            Panel(
                f"[bold red]Configuration Error - Safe Mode Active[/bold red]\n\n"
                f"Failed to load {meta.path}:\n{meta.error}\n\n"
                f"[yellow]Using default settings.[/yellow]",
                border_style="red",
            )
        )
    else:
        logger.debug(
            "Loaded configuration from %s (env overrides: %s)",
            meta.path,
            sorted(meta.env_overrides),
        )


@app.command("config")
def show_config(ctx: typer.Context) -> None:
    """Show the active configuration and where it came from."""
    state: AppState = ctx.obj
    config = state.config
    meta = state.config_meta

    table = Table(title="Config", box=box.SIMPLE, expand=True)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")

    for group, values in config.model_dump().items():
        for key, value in values.items():
            table.add_row(f"{group}.{key}", str(value))

    console.print(table)

    meta_lines = [
        f"Path: {meta.path}",
        "File loaded: yes" if meta.file_loaded else "File loaded: no (using defaults + env)",
        f"Queue: {config.queue_path}",
        f"History: {config.history_path} (keeps {HISTORY_LIMIT})",
        f"Retries per queued note: {MAX_RETRIES}",
    ]

    if meta.env_overrides:
        meta_lines.append("Env overrides: " + ", ".join(sorted(meta.env_overrides)))

    console.print(Panel("\n".join(meta_lines), title="Config source", box=box.SIMPLE))


@app.command("version")
def show_version() -> None:
    """Print the noter version."""
    console.print(__version__)


def _register_commands() -> None:
    commands_path = Path(__file__).resolve().parent / "commands"
    typer_modules, function_commands = discover_commands(commands_path)

    for name, module in typer_modules:
        app.add_typer(module.app, name=name)

    for spec in function_commands:
        app.command(spec.name)(spec.handler)


def _register_commands_with_timing() -> None:
    start = perf_counter()
    _register_commands()
    elapsed = perf_counter() - start
    logger.debug("Command registry initialized in %.3f seconds", elapsed)


_register_commands_with_timing()


def cli() -> None:
    app()


if __name__ == "__main__":
    cli()
