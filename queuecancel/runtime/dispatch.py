"""Background dispatch helpers for running invocations as asyncio tasks."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from .lifecycle import HostLifetime
from .work import CancellableUnitOfWork, Invocation, WorkResult, WorkState

logger = logging.getLogger(__name__)


@dataclass
class InvocationHandle:
    """Handle for a background-dispatched invocation."""

    invocation: Invocation
    task: asyncio.Task[WorkResult]

    def cancel(self, reason: str = "requested") -> None:
        """Request cooperative cancellation through the invocation token."""
        if not self.invocation.token.can_be_cancelled:
            logger.warning(
                "Invocation %s has no cancellable token; cancel(%r) has no effect",
                self.invocation.invocation_id[:8],
                reason,
            )
            return
        self.invocation.token.cancel(reason=reason)

    def done(self) -> bool:
        """Return True if the invocation has finished."""
        return self.task.done()

    async def wait(self) -> WorkResult:
        """Wait for completion and return the work result."""
        return await self.task

    @property
    def status(self) -> str:
        """Best-effort status for the dispatched invocation."""
        if not self.task.done():
            return WorkState.RUNNING.value
        if self.task.cancelled():
            return "cancelled"
        if self.task.exception():
            return "error"
        return self.task.result().state.value


def dispatch_invocation(
    work: CancellableUnitOfWork,
    invocation: Invocation,
    *,
    host: HostLifetime | None = None,
) -> InvocationHandle:
    """Dispatch an invocation in background and return a handle."""
    task = asyncio.create_task(work.run(invocation, host=host))
    return InvocationHandle(invocation=invocation, task=task)
