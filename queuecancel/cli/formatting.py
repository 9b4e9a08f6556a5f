"""Rich formatting helpers for CLI output."""

from __future__ import annotations

from datetime import datetime, timezone

from rich.markup import escape

from ..runtime.work import WorkResult, WorkState
from ..ui.theme import THEME


def _markup(text: str, color: str) -> str:
    """Wrap text in Rich markup with the given color, escaping special chars."""
    return f"[{color}]{escape(text)}[/{color}]"


def _format_result(result: WorkResult) -> str:
    """One-line summary of a finished invocation."""
    if result.state is WorkState.CANCELLED:
        reason = f" ({result.reason})" if result.reason else ""
        return _markup(f"Cancelled after {result.steps} steps{reason}", THEME.warning)
    return _markup(f"Completed {result.steps} steps", THEME.success)


def _format_age(started_at: str) -> str:
    """Render an ISO timestamp as a coarse age like '42s' or '3m'."""
    try:
        started = datetime.fromisoformat(started_at)
    except ValueError:
        return "?"
    seconds = int((datetime.now(timezone.utc) - started).total_seconds())
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    return f"{seconds // 3600}h"
