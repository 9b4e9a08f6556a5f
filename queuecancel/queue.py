"""Directory-backed message queue used as the local message source.

Layout: ``<root>/<queue name>/`` holds one UTF-8 file per message.

- ``*.msg`` is a pending message
- ``*.processing`` is a message claimed by ``receive()``
- ``complete()`` deletes the claimed file

File names are ``<nanosecond timestamp>-<message id>`` so lexical order is
arrival order.
"""

from __future__ import annotations

import logging
import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_NAME = "test-queue"


def default_queue_root() -> Path:
    return Path(
        os.getenv("QUEUECANCEL_QUEUE_DIR", str(Path.home() / ".config" / "queue-cancel" / "queues"))
    )


@dataclass(frozen=True)
class QueueMessage:
    """A message claimed from the queue."""

    message_id: str
    text: str
    path: Path


class DirectoryQueue:
    """FIFO queue with one file per message."""

    def __init__(self, name: str = DEFAULT_QUEUE_NAME, root: Path | None = None) -> None:
        self.name = name
        self.path = (root or default_queue_root()) / name
        self.path.mkdir(parents=True, exist_ok=True)

    def send(self, text: str) -> str:
        """Append a message and return its ID."""
        message_id = uuid.uuid4().hex
        stem = f"{time.time_ns():020d}-{message_id}"
        tmp = self.path / f"{stem}.tmp"
        tmp.write_text(text, encoding="utf-8")
        tmp.rename(self.path / f"{stem}.msg")
        logger.debug("Enqueued %s on %s", message_id, self.name)
        return message_id

    def _pending(self) -> list[Path]:
        return sorted(self.path.glob("*.msg"))

    def receive(self) -> QueueMessage | None:
        """Claim the oldest pending message, or return None if the queue is empty."""
        for pending in self._pending():
            claimed = pending.with_suffix(".processing")
            try:
                pending.rename(claimed)
            except FileNotFoundError:
                # Claimed by another consumer first
                continue
            return QueueMessage(
                message_id=pending.stem.split("-", 1)[-1],
                text=claimed.read_text(encoding="utf-8"),
                path=claimed,
            )
        return None

    def complete(self, message: QueueMessage) -> None:
        """Remove a claimed message for good."""
        try:
            message.path.unlink()
        except FileNotFoundError:
            pass

    def __len__(self) -> int:
        return len(self._pending())
