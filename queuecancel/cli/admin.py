"""Admin commands: ps, kill."""

from __future__ import annotations

from typing import Annotated

import typer

from ..errors import MissingKillTargetError, NoMatchingInvocationError
from ..signals import SignalManager
from ..ui.theme import THEME
from .formatting import _format_age, _markup
from .state import app, console


@app.command()
def ps(
    cleanup: Annotated[
        bool,
        typer.Option("--cleanup", help="Remove stale entries from crashed workers"),
    ] = False,
) -> None:
    """List running invocations."""
    sm = SignalManager()

    if cleanup:
        cleaned = sm.cleanup_stale()
        if cleaned:
            for invocation_id in cleaned:
                console.print(f"[dim]Cleaned: {invocation_id[:8]}[/dim]")
            console.print(_markup(f"Removed {len(cleaned)} stale entries", THEME.success))
        else:
            console.print("[dim]No stale entries found[/dim]")

    running = sm.list_running()
    if not running:
        console.print("[dim]No running invocations[/dim]")
        raise typer.Exit(0)

    for info in running:
        preview = info.payload_preview[:50]
        if len(info.payload_preview) > 50:
            preview += "..."
        state = "cancelling" if sm.is_cancelled(info.invocation_id) else "running"
        state_color = THEME.warning if state == "cancelling" else THEME.success
        console.print(
            f"  {_markup(info.invocation_id[:8], THEME.accent)}  {_markup(f'{state:<10}', state_color)}  "
            f"{_markup(f'{info.queue:<14}', THEME.muted)}  {_format_age(info.started_at):>6}  {preview}"
        )


@app.command()
def kill(
    prefix: Annotated[
        str | None,
        typer.Argument(help="Invocation ID prefix to kill"),
    ] = None,
    all: Annotated[
        bool,
        typer.Option("--all", help="Kill all running invocations"),
    ] = False,
) -> None:
    """Cancel running invocations by invocation ID prefix."""
    sm = SignalManager()

    if all:
        cancelled = sm.cancel_all()
        for invocation_id in cancelled:
            console.print(_markup(f"Cancelled: {invocation_id[:8]}", THEME.warning))
        console.print(_markup(f"Sent cancel signal to {len(cancelled)} invocations", THEME.success))
        return

    if not prefix:
        console.print(_markup(str(MissingKillTargetError()), THEME.error))
        raise typer.Exit(1)

    # An exact ID targets only that invocation, even if it prefixes others
    cancelled = [prefix] if sm.cancel(prefix) else sm.cancel_by_prefix(prefix)
    if not cancelled:
        console.print(_markup(str(NoMatchingInvocationError(prefix)), THEME.error))
        raise typer.Exit(1)
    for invocation_id in cancelled:
        console.print(_markup(f"Cancelled: {invocation_id[:8]}", THEME.warning))
