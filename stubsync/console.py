"""Shared console output and logging setup."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

console = Console(highlight=False)


def say(message: str, style: str | None = None, out: Console | None = None) -> None:
    """Print a user-facing message, optionally styled (e.g. ``"yellow"``)."""
    target = out or console
    target.print(message, style=style, markup=False, soft_wrap=True)


def configure_logging(verbose: bool = False) -> None:
    """Route stubsync diagnostics through rich.

    ``--verbose`` shows DEBUG records, which is where swallowed load failures
    end up.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    handler = RichHandler(console=Console(stderr=True), show_path=False, markup=False)
    root = logging.getLogger("stubsync")
    root.handlers[:] = [handler]
    root.setLevel(level)
    root.propagate = False
