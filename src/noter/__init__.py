"""noter - capture quick notes and hand them to the opencode CLI for formatting.

This package provides the core submission pipeline behind the `noter`
command-line tool: streamed subprocess execution, a durable retry queue
and a bounded history of outcomes.

Exports:
    __version__: Package version string.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.4.0"
