"""File-based signal protocol for cancelling running invocations.

Signal directory: ~/.config/queue-cancel/signals/ (override via QUEUECANCEL_SIGNAL_DIR)

Protocol:
- Invocation starts -> writes <invocation_id>.running (JSON: pid, queue, payload preview, started_at)
- Invocation ends -> deletes .running + .cancel files
- Kill command -> writes <invocation_id>.cancel
- Worker polls is_cancelled() -> stat() for .cancel file
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path

from .runtime.cancellation import CancellationToken

logger = logging.getLogger(__name__)

KILL_REASON = "killed"


def _signal_dir() -> Path:
    """Get the signal directory, creating it if needed."""
    path = Path(
        os.getenv(
            "QUEUECANCEL_SIGNAL_DIR", str(Path.home() / ".config" / "queue-cancel" / "signals")
        )
    )
    path.mkdir(parents=True, exist_ok=True)
    return path


@dataclass
class InvocationInfo:
    """Information about a running invocation, written to the .running file."""

    invocation_id: str
    pid: int
    queue: str
    payload_preview: str
    started_at: str  # ISO format

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, data: str) -> InvocationInfo:
        return cls(**json.loads(data))


class SignalManager:
    """Manages file-based signals for invocation cancellation."""

    def __init__(self, signal_dir: Path | None = None) -> None:
        self._dir = signal_dir or _signal_dir()
        self._dir.mkdir(parents=True, exist_ok=True)

    def _running_path(self, invocation_id: str) -> Path:
        return self._dir / f"{invocation_id}.running"

    def _cancel_path(self, invocation_id: str) -> Path:
        return self._dir / f"{invocation_id}.cancel"

    def register(self, info: InvocationInfo) -> None:
        """Write a .running file for this invocation."""
        self._running_path(info.invocation_id).write_text(info.to_json(), encoding="utf-8")

    def deregister(self, invocation_id: str) -> None:
        """Remove signal files for this invocation."""
        for path in (self._running_path(invocation_id), self._cancel_path(invocation_id)):
            try:
                path.unlink()
            except FileNotFoundError:
                pass

    def is_cancelled(self, invocation_id: str) -> bool:
        """Check if a .cancel file exists (single stat() call)."""
        return self._cancel_path(invocation_id).exists()

    def cancel(self, invocation_id: str) -> bool:
        """Write a .cancel file for a specific invocation.

        Returns True if the invocation was found and cancel signal written.
        """
        if not self._running_path(invocation_id).exists():
            return False
        self._cancel_path(invocation_id).write_text("", encoding="utf-8")
        return True

    def cancel_by_prefix(self, prefix: str) -> list[str]:
        """Cancel all invocations whose ID starts with the given prefix."""
        cancelled = []
        for info in self.list_running():
            if info.invocation_id.startswith(prefix):
                self._cancel_path(info.invocation_id).write_text("", encoding="utf-8")
                cancelled.append(info.invocation_id)
        return cancelled

    def cancel_all(self) -> list[str]:
        """Cancel all running invocations."""
        cancelled = []
        for info in self.list_running():
            self._cancel_path(info.invocation_id).write_text("", encoding="utf-8")
            cancelled.append(info.invocation_id)
        return cancelled

    def list_running(self) -> list[InvocationInfo]:
        """List all invocations with .running files."""
        running = []
        for path in self._dir.glob("*.running"):
            try:
                data = path.read_text(encoding="utf-8")
                running.append(InvocationInfo.from_json(data))
            except (json.JSONDecodeError, TypeError, KeyError):
                # Corrupt file, skip
                continue
        running.sort(key=lambda i: i.started_at, reverse=True)
        return running

    def cleanup_stale(self) -> list[str]:
        """Remove .running files for dead PIDs.

        Returns list of cleaned-up invocation IDs.
        """
        cleaned = []
        for info in self.list_running():
            if not _pid_alive(info.pid):
                self.deregister(info.invocation_id)
                cleaned.append(info.invocation_id)
        return cleaned


async def watch_for_cancel(
    manager: SignalManager,
    invocation_id: str,
    token: CancellationToken,
    interval: float = 0.5,
) -> None:
    """Cancel ``token`` once a kill signal appears for ``invocation_id``.

    Returns when the token is cancelled by this or any other route.
    """
    while not token.is_cancelled():
        if manager.is_cancelled(invocation_id):
            logger.info("Kill signal received for %s", invocation_id[:8])
            token.cancel(reason=KILL_REASON)
            return
        await asyncio.sleep(interval)


def _pid_alive(pid: int) -> bool:
    """Check if a process with the given PID is alive."""
    try:
        os.kill(pid, 0)
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        # Process exists but we can't signal it
        return True
