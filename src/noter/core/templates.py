"""Quick note templates and variable expansion.

Supported variables:
    {{date}}       current date, YYYY-MM-DD
    {{time}}       current time, HH:MM
    {{datetime}}   YYYY-MM-DD HH:MM
    {{clipboard}}  clipboard text, empty when no clipboard is available
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass

import pyperclip

from noter.core.console import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class NoteTemplate:
    name: str
    template: str
    color: str = "blue"
    show_in_quick_actions: bool = True


BUILTIN_TEMPLATES: tuple[NoteTemplate, ...] = (
    NoteTemplate(name="Task", template="- [ ] ", color="blue"),
    NoteTemplate(
        name="Meeting",
        template="## Meeting - {{datetime}}\n\nAttendees: \n\nNotes:\n- ",
        color="purple",
    ),
    NoteTemplate(name="Idea", template="Idea: ", color="yellow"),
    NoteTemplate(name="Blocker", template="BLOCKER: ", color="red"),
    NoteTemplate(name="Done", template="Done at {{time}}: ", color="green"),
)


def read_clipboard() -> str:
    try:
        return pyperclip.paste() or ""
    except pyperclip.PyperclipException as exc:
        logger.debug("Clipboard unavailable: %s", exc)
        return ""


def expand_variables(text: str, now: dt.datetime | None = None) -> str:
    """Substitute template variables in ``text``."""
    moment = now or dt.datetime.now()
    expanded = (
        text.replace("{{datetime}}", moment.strftime("%Y-%m-%d %H:%M"))
        .replace("{{date}}", moment.strftime("%Y-%m-%d"))
        .replace("{{time}}", moment.strftime("%H:%M"))
    )
    if "{{clipboard}}" in expanded:
        expanded = expanded.replace("{{clipboard}}", read_clipboard())
    return expanded


def apply_template(current: str, template: NoteTemplate, now: dt.datetime | None = None) -> str:
    """Append the expanded template to ``current`` on its own line."""
    expanded = expand_variables(template.template, now)
    if not current:
        return expanded
    separator = "" if current.endswith("\n") else "\n"
    return f"{current}{separator}{expanded}"


def find_template(name: str) -> NoteTemplate | None:
    wanted = name.strip().lower()
    return next((t for t in BUILTIN_TEMPLATES if t.name.lower() == wanted), None)


def quick_action_templates() -> list[NoteTemplate]:
    return [t for t in BUILTIN_TEMPLATES if t.show_in_quick_actions]


__all__ = [
    "BUILTIN_TEMPLATES",
    "NoteTemplate",
    "apply_template",
    "expand_variables",
    "find_template",
    "quick_action_templates",
]
