"""History commands: list, delete, clear."""

from __future__ import annotations

import asyncio
import datetime as dt

import typer
from rich import box
from rich.markup import escape
from rich.table import Table

from noter.commands._shared import resolve_id, short_id
from noter.core.console import console, styled_status
from noter.core.services import NoterServices

app = typer.Typer(help="Review recent submissions.")


def _format_when(moment: dt.datetime) -> str:
    moment = moment.astimezone()
    today = dt.date.today()
    if moment.date() == today:
        return moment.strftime("Today %H:%M")
    if moment.date() == today - dt.timedelta(days=1):
        return moment.strftime("Yesterday %H:%M")
    return moment.strftime("%b %d, %H:%M")


def _services(ctx: typer.Context) -> NoterServices:
    return ctx.obj.services


@app.command("list")
def list_history(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Entries to show."),
    preview: bool = typer.Option(False, "--preview", "-p", help="Show output previews."),
) -> None:
    """Show the most recent submissions first."""
    items = asyncio.run(_services(ctx).history.get_all())
    if not items:
        console.print("[dim]No history yet.[/dim]")
        return

    table = Table(title="History", box=box.SIMPLE_HEAVY, expand=True)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("When", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Note", style="white")
    if preview:
        table.add_column("Output", style="dim")

    for item in items[:limit]:
        row = [
            short_id(item.id),
            _format_when(item.timestamp),
            styled_status(item.status.value),
            escape(item.truncated_text),
        ]
        if preview:
            row.append(escape(item.output_preview or ""))
        table.add_row(*row)

    console.print(table)


@app.command("delete")
def delete(ctx: typer.Context, entry_id: str = typer.Argument(..., help="Id or id prefix.")) -> None:
    """Delete one history entry."""
    history = _services(ctx).history

    async def _run() -> None:
        items = await history.get_all()
        await history.delete(resolve_id(entry_id, [item.id for item in items]))

    asyncio.run(_run())
    console.print("Deleted.")


@app.command("clear")
def clear(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Delete all history."""
    history = _services(ctx).history
    if not yes and not typer.confirm(f"Delete {history.count} history entries?"):
        raise typer.Abort()
    asyncio.run(history.clear_all())
    console.print("History cleared.")
