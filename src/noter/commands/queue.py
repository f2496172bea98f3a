"""Retry queue commands: list, drain, retry, remove, clear."""

from __future__ import annotations

import asyncio

import typer
from rich import box
from rich.markup import escape
from rich.table import Table

from noter.commands._shared import resolve_id, short_id
from noter.core.console import console
from noter.core.services import NoterServices

app = typer.Typer(help="Inspect and drain the offline retry queue.")


def _services(ctx: typer.Context) -> NoterServices:
    return ctx.obj.services


@app.command("list")
def list_queue(ctx: typer.Context) -> None:
    """Show queued notes in retry order."""
    services = _services(ctx)
    items = asyncio.run(services.queue.get_all())
    if not items:
        console.print("[dim]Queue is empty.[/dim]")
        return

    table = Table(title=f"Queue ({len(items)})", box=box.SIMPLE_HEAVY, expand=True)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Note", style="white")
    table.add_column("Created", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Last error", style="dim")

    for item in items:
        style = "yellow" if item.can_retry else "red"
        table.add_row(
            short_id(item.id),
            escape(item.truncated_text),
            item.created_at.astimezone().strftime("%Y-%m-%d %H:%M"),
            f"[{style}]{item.retry_status_text}[/{style}]",
            escape(item.last_error or ""),
        )

    console.print(table)


@app.command("drain")
def drain(ctx: typer.Context) -> None:
    """Retry every queued note that has attempts left."""
    services = _services(ctx)
    delivered: list[int] = []
    unsubscribe = services.processor.on_processed(delivered.append)
    try:
        report = asyncio.run(services.processor.drain())
    finally:
        unsubscribe()

    if report.skipped:
        console.print("[yellow]A drain pass is already running.[/yellow]")
        return
    if report.attempted == 0:
        console.print("[dim]Nothing to retry.[/dim]")
        return

    console.print(
        f"Attempted {report.attempted}: "
        f"[green]{report.processed} delivered[/green], "
        f"[red]{report.failed} failed[/red]"
        + (f" ({report.exhausted} out of retries)" if report.exhausted else "")
    )
    if delivered:
        console.print(f"[green]{sum(delivered)} queued note(s) added to your daily note.[/green]")


@app.command("retry")
def retry(ctx: typer.Context, entry_id: str = typer.Argument(..., help="Id or id prefix.")) -> None:
    """Retry a single queued note now."""
    services = _services(ctx)

    async def _run() -> bool | None:
        items = await services.queue.get_all()
        target = resolve_id(entry_id, [item.id for item in items])
        entry = await services.queue.get(target)
        if entry is None or not entry.can_retry:
            return None
        return await services.processor.retry_item(target)

    outcome = asyncio.run(_run())
    if outcome is None:
        console.print("[red]Entry has no retries left.[/red] Remove it with `noter queue remove`.")
        raise typer.Exit(code=1)
    if outcome:
        console.print("[green]Delivered and removed from the queue.[/green]")
    else:
        console.print("[yellow]Still failing; kept in the queue.[/yellow]")
        raise typer.Exit(code=1)


@app.command("remove")
def remove(ctx: typer.Context, entry_id: str = typer.Argument(..., help="Id or id prefix.")) -> None:
    """Delete one queued note."""
    services = _services(ctx)

    async def _run() -> None:
        items = await services.queue.get_all()
        await services.queue.remove(resolve_id(entry_id, [item.id for item in items]))

    asyncio.run(_run())
    console.print(f"Removed. {services.queue.count} left in the queue.")


@app.command("clear")
def clear(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Delete every queued note."""
    services = _services(ctx)
    if not yes and not typer.confirm(f"Discard {services.queue.count} queued note(s)?"):
        raise typer.Abort()
    asyncio.run(services.queue.clear())
    console.print("Queue cleared.")
