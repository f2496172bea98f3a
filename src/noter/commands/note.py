"""Interactive note submission.

Provides CLI commands for:
    - Adding a note through opencode with live streamed output
    - Locating the opencode executable
    - Listing the models offered for quick selection
"""

from __future__ import annotations

import asyncio
import signal
import sys
from pathlib import Path

import typer
from rich.markup import escape

from noter.core.console import console
from noter.core.detect import detect_executable, is_executable
from noter.core.models import SubmissionStatus
from noter.core.result import ExecutionError, SpawnError
from noter.core.services import NoterServices
from noter.core.templates import apply_template, find_template


def _read_note(text: str | None, template: str | None) -> str:
    note_text = text or ""
    if text is None and not sys.stdin.isatty():
        note_text = sys.stdin.read()

    if template:
        chosen = find_template(template)
        if chosen is None:
            console.print(f"[red]Unknown template:[/red] {template}")
            raise typer.Exit(code=1)
        note_text = apply_template("", chosen) + note_text

    return note_text.strip()


async def _offer_queue(
    services: NoterServices,
    note_text: str,
    directory: Path,
    model: str,
    executable: str,
    error: str,
    queue_on_failure: bool | None,
) -> None:
    should_queue = queue_on_failure
    if should_queue is None:
        should_queue = typer.confirm("Queue this note for a later retry?", default=True)
    if not should_queue:
        return
    submission = await services.enqueue_failed(note_text, directory, model, executable, error)
    console.print(
        f"[yellow]Queued[/yellow] {str(submission.id)[:8]} "
        f"({services.queue.count} waiting). Run `noter queue drain` to retry."
    )


def add(
    ctx: typer.Context,
    text: str | None = typer.Argument(None, help="Note text. Read from stdin when omitted."),
    target_dir: Path | None = typer.Option(
        None, "--dir", "-d", help="Directory opencode runs in (defaults to config)."
    ),
    model: str | None = typer.Option(None, "--model", "-m", help="Model identifier."),
    executable: str | None = typer.Option(
        None, "--executable", "-e", help="Path to the opencode binary."
    ),
    template: str | None = typer.Option(
        None, "--template", "-t", help="Prepend a quick template (see `noter templates list`)."
    ),
    queue_on_failure: bool | None = typer.Option(
        None,
        "--queue-on-failure/--no-queue",
        help="Queue failed notes without asking (or never queue them).",
    ),
) -> None:
    """Send a note to opencode and stream its reply. Ctrl-C cancels."""
    state = ctx.obj
    config = state.config
    services: NoterServices = state.services

    directory = target_dir or config.user.target_directory
    if directory is None:
        console.print("[red]No target directory.[/red] Pass --dir or set user.target_directory.")
        raise typer.Exit(code=1)
    directory = directory.expanduser().resolve()

    model_id = model or config.tool.model
    executable_path = executable or config.tool.executable_path

    note_text = _read_note(text, template)
    if not note_text:
        console.print("[red]Nothing to add.[/red]")
        raise typer.Exit(code=1)

    async def _run() -> int:
        try:
            stream = await services.submit(note_text, directory, executable_path, model_id)
        except SpawnError as exc:
            console.print(f"[red]Could not start opencode:[/red] {escape(str(exc))}")
            await services.record_spawn_failure(note_text, directory)
            await _offer_queue(
                services,
                note_text,
                directory,
                model_id,
                executable_path,
                str(exc),
                queue_on_failure,
            )
            return 1

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, stream.handle.cancel)
        except (NotImplementedError, RuntimeError):
            state.logger.debug("SIGINT cancellation unavailable on this platform")

        try:
            async for chunk in stream.chunks:
                console.print(chunk, end="", markup=False, highlight=False)
        except ExecutionError:
            pass  # surfaced through the result below
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except (NotImplementedError, RuntimeError):
                pass

        result = await stream.result()
        console.print()

        match result.status:
            case SubmissionStatus.COMPLETED:
                console.print("[green]Added to daily note[/green]")
                return 0
            case SubmissionStatus.CANCELLED:
                console.print("[yellow]\\[Cancelled][/yellow]")
                return 130
            case _:
                console.print(f"[red]Error:[/red] {escape(result.error or '')}")
                await _offer_queue(
                    services,
                    note_text,
                    directory,
                    model_id,
                    executable_path,
                    result.error or "Unknown error",
                    queue_on_failure,
                )
                return 1

    exit_code = asyncio.run(_run())
    if exit_code:
        raise typer.Exit(code=exit_code)


def detect(ctx: typer.Context) -> None:
    """Locate the opencode executable and compare it with the configured path."""
    configured = ctx.obj.config.tool.executable_path
    found = detect_executable()

    if is_executable(configured):
        console.print(f"[green]Configured[/green] {configured}")
    else:
        console.print(f"[yellow]Configured path is not executable:[/yellow] {configured}")

    if found is None:
        console.print("[red]opencode not found[/red] on PATH or in common install locations.")
        raise typer.Exit(code=1)
    if found != configured:
        console.print(f"Detected {found} (set tool.executable_path to use it)")


def models(ctx: typer.Context) -> None:
    """List the models offered for quick selection; the default is marked."""
    tool = ctx.obj.config.tool
    offered = list(tool.available_models)
    if tool.model not in offered:
        offered.insert(0, tool.model)

    for model_id in offered:
        if model_id == tool.model:
            console.print(f"[green]*[/green] {model_id} [dim](default)[/dim]")
        else:
            console.print(f"  {model_id}")
