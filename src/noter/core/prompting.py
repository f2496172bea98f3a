"""Prompt rendering for the opencode `run` invocation.

The instruction text lives in ``noter/templates/add_note.j2`` and is rendered
with Jinja2. The note itself is embedded verbatim; the tool's reply is never
parsed.
"""

from __future__ import annotations

import datetime as dt
from functools import lru_cache
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined

PROMPT_TEMPLATE = "add_note.j2"
TEMPLATE_ROOT = Path(__file__).resolve().parent.parent / "templates"


@lru_cache(maxsize=1)
def get_template_environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_ROOT)),
        autoescape=False,
        keep_trailing_newline=False,
        undefined=StrictUndefined,
    )


def render_prompt(note_text: str, now: dt.datetime | None = None) -> str:
    """Render the instructional prompt embedding the note and the current date/time."""
    moment = now or dt.datetime.now()
    template = get_template_environment().get_template(PROMPT_TEMPLATE)
    return template.render(
        note=note_text,
        date=moment.strftime("%Y-%m-%d"),
        time=moment.strftime("%H:%M"),
    )


def build_arguments(model_id: str, prompt: str) -> list[str]:
    """Arguments passed after the executable: ``run --model <model> <prompt>``."""
    return ["run", "--model", model_id, prompt]


__all__ = ["build_arguments", "render_prompt"]
