"""Queue worker: one message at a time through the cancellable unit of work."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from dataclasses import replace
from datetime import datetime, timezone

from .queue import DirectoryQueue, QueueMessage
from .runtime.cancellation import CancellationToken, linked_token
from .runtime.lifecycle import HostLifetime
from .runtime.work import CancellableUnitOfWork, Invocation, WorkResult
from .signals import InvocationInfo, SignalManager, watch_for_cancel

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 80


class QueueWorker:
    """Receives messages from a queue and runs each to a terminal state.

    Each invocation gets its own token, linked to the host's stopping token
    and to the file kill signal. The host token is offered as the secondary
    handle so the unit of work can report whether the two coincide.
    """

    def __init__(
        self,
        queue: DirectoryQueue,
        work: CancellableUnitOfWork,
        *,
        host: HostLifetime | None = None,
        signals: SignalManager | None = None,
        poll_interval: float = 1.0,
        kill_poll_interval: float = 0.5,
    ) -> None:
        self.queue = queue
        self.work = work
        self.host = host or HostLifetime()
        self.signals = signals or SignalManager()
        self.poll_interval = poll_interval
        self.kill_poll_interval = kill_poll_interval

    async def invoke(
        self,
        payload: str,
        *,
        invocation_id: str | None = None,
        interrupt: CancellationToken | None = None,
    ) -> WorkResult:
        """Run one payload to a terminal state.

        ``interrupt`` is an extra caller-owned token (e.g. Ctrl+C) that also
        cancels this invocation.
        """
        kill = CancellationToken()
        parents = [self.host.stopping, kill]
        if interrupt is not None:
            parents.append(interrupt)
        token = linked_token(*parents)
        invocation = Invocation(payload=payload, token=token, secondary=self.host.stopping)
        if invocation_id is not None:
            invocation = replace(invocation, invocation_id=invocation_id)
        self.signals.register(
            InvocationInfo(
                invocation_id=invocation.invocation_id,
                pid=os.getpid(),
                queue=self.queue.name,
                payload_preview=payload[:PREVIEW_CHARS],
                started_at=datetime.now(timezone.utc).isoformat(),
            )
        )
        watcher = asyncio.create_task(
            watch_for_cancel(
                self.signals, invocation.invocation_id, kill, interval=self.kill_poll_interval
            )
        )
        try:
            result = await self.work.run(invocation, host=self.host)
        finally:
            watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher
            token.close()
            self.signals.deregister(invocation.invocation_id)

        logger.info(
            "Invocation %s finished: %s after %d steps",
            invocation.invocation_id[:8],
            result.state.value,
            result.steps,
        )
        return result

    async def process(self, message: QueueMessage) -> WorkResult:
        """Run one claimed message and complete it.

        If the unit of work raises, the message stays claimed and the error
        propagates.
        """
        result = await self.invoke(message.text, invocation_id=message.message_id)
        self.queue.complete(message)
        return result

    async def run(self, *, drain: bool = False) -> list[WorkResult]:
        """Consume messages until the host stops, or the queue empties when ``drain``."""
        results: list[WorkResult] = []
        while not self.host.stopping.is_cancelled():
            message = self.queue.receive()
            if message is None:
                if drain:
                    break
                await asyncio.sleep(self.poll_interval)
                continue
            results.append(await self.process(message))
        return results
