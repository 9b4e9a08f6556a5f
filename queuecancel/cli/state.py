"""Shared CLI state: console, app, logging setup."""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from ..ui.console import console

# Typer app
app = typer.Typer(
    name="queue-cancel",
    help="Queue-triggered worker that demonstrates cooperative cancellation.",
    epilog=(
        "Examples:\n"
        '  queue-cancel run "hello"\n'
        "  queue-cancel run hello --max-steps 5 --interval 0.5\n"
        '  queue-cancel enqueue "hello"\n'
        "  queue-cancel worker --drain\n"
        "  queue-cancel ps\n"
        "  queue-cancel kill 0000017\n"
        "  queue-cancel kill --all"
    ),
    add_completion=False,
)


def configure_logging(level: int | str = logging.INFO) -> None:
    """Send log records to the Rich console."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)
    root.addHandler(RichHandler(console=console, show_path=False, rich_tracebacks=True))
    root.setLevel(level)
