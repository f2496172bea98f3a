"""Quick template commands."""

from __future__ import annotations

import typer
from rich import box
from rich.markup import escape
from rich.table import Table

from noter.core.console import console
from noter.core.templates import expand_variables, find_template, quick_action_templates

app = typer.Typer(help="Quick note templates.")


@app.command("list")
def list_templates() -> None:
    """Show the built-in quick templates."""
    table = Table(box=box.SIMPLE, expand=True)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Template", style="white")
    for template in quick_action_templates():
        table.add_row(
            f"[{template.color}]{template.name}[/{template.color}]",
            escape(template.template),
        )
    console.print(table)


@app.command("show")
def show(name: str = typer.Argument(..., help="Template name.")) -> None:
    """Print a template with its variables expanded."""
    template = find_template(name)
    if template is None:
        console.print(f"[red]Unknown template:[/red] {name}")
        raise typer.Exit(code=1)
    console.print(expand_variables(template.template), markup=False, highlight=False)
