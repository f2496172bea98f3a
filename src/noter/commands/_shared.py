"""Helpers shared by command modules."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

import typer

from noter.core.console import console


def resolve_id(prefix: str, ids: Iterable[UUID]) -> UUID:
    """Match a full id or a unique prefix of one, exiting with an error otherwise."""
    needle = prefix.strip().lower()
    matches = [candidate for candidate in ids if str(candidate).startswith(needle)]
    if not needle or not matches:
        console.print(f"[red]No entry matches[/red] {prefix}")
        raise typer.Exit(code=1)
    if len(matches) > 1:
        console.print(f"[red]Ambiguous id[/red] {prefix} ({len(matches)} matches)")
        raise typer.Exit(code=1)
    return matches[0]


def short_id(value: UUID) -> str:
    return str(value)[:8]
