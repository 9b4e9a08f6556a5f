"""The cancellable unit of work run for each delivered queue message."""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from ..ui.console import console
from .cancellation import NONE, CancellationRegistration, CancellationToken

if TYPE_CHECKING:
    from .lifecycle import HostLifetime

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 1000
DEFAULT_STEP_INTERVAL_S = 1.0


class WorkState(str, Enum):
    """Phase of a unit of work."""

    IDLE = "idle"
    RUNNING = "running"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Invocation:
    """One delivered message plus the cancellation handles offered with it."""

    payload: str
    token: CancellationToken = NONE
    secondary: CancellationToken | None = None
    invocation_id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class WorkResult:
    """Terminal outcome of a unit of work."""

    invocation_id: str
    state: WorkState
    steps: int
    reason: str | None = None


@dataclass
class WorkEvent:
    """Phase transition emitted while a unit of work runs."""

    type: str  # started | step | cancelled | completed
    invocation_id: str
    step: int | None = None


EventHandler = Callable[[WorkEvent], Awaitable[None] | None]
Notifier = Callable[[str], object]
Sleeper = Callable[[float], Awaitable[object]]


def _console_notify(message: str) -> None:
    console.print(message, highlight=False)


class CancellableUnitOfWork:
    """Step-bounded loop that stops at the first step boundary after cancellation.

    Each step suspends for ``step_interval`` seconds, then checks the
    invocation's token. Only the primary token ends the loop; a secondary
    token is compared and observed but never drives termination.
    """

    def __init__(
        self,
        *,
        max_steps: int = DEFAULT_MAX_STEPS,
        step_interval: float = DEFAULT_STEP_INTERVAL_S,
        sleep: Sleeper = asyncio.sleep,
        notify: Notifier = _console_notify,
        on_event: EventHandler | None = None,
    ) -> None:
        if max_steps < 1:
            raise ValueError(f"max_steps must be at least 1, got {max_steps}")
        if step_interval < 0:
            raise ValueError(f"step_interval must not be negative, got {step_interval}")
        self.max_steps = max_steps
        self.step_interval = step_interval
        self._sleep = sleep
        self._notify = notify
        self._on_event = on_event

    async def _emit(self, event: WorkEvent) -> None:
        if self._on_event is None:
            return
        result = self._on_event(event)
        if inspect.isawaitable(result):
            await result

    def _log_comparisons(self, invocation: Invocation, host: HostLifetime | None) -> None:
        token = invocation.token
        logger.info("token is NONE? %s", token is NONE)
        if invocation.secondary is not None:
            logger.info("secondary token is NONE? %s", invocation.secondary is NONE)
            logger.info("secondary token is token? %s", invocation.secondary == token)
        if host is not None:
            logger.info("host stopping token is token? %s", host.stopping == token)
        else:
            logger.info("host lifetime is absent")

    def _register_callbacks(
        self, invocation: Invocation, registrations: list[CancellationRegistration]
    ) -> None:
        # Each registration lands in ``registrations`` as soon as it exists.
        registrations.append(
            invocation.token.register(
                lambda: self._notify("CancellationToken register callback invoked.")
            )
        )
        if invocation.secondary is not None:
            registrations.append(
                invocation.secondary.register(
                    lambda: self._notify("Secondary CancellationToken register callback invoked.")
                )
            )

    async def run(
        self,
        invocation: Invocation,
        *,
        host: HostLifetime | None = None,
    ) -> WorkResult:
        """Run the loop for one invocation and return its terminal state."""
        token = invocation.token
        logger.info("Queue trigger processed message: %s", invocation.payload)
        self._log_comparisons(invocation, host)

        registrations: list[CancellationRegistration] = []
        try:
            self._register_callbacks(invocation, registrations)
            await self._emit(WorkEvent(type="started", invocation_id=invocation.invocation_id))
            for step in range(self.max_steps):
                await self._sleep(self.step_interval)

                if token.is_cancelled():
                    logger.info("Cancellation requested!")
                    await self._emit(
                        WorkEvent(
                            type="cancelled", invocation_id=invocation.invocation_id, step=step
                        )
                    )
                    return WorkResult(
                        invocation_id=invocation.invocation_id,
                        state=WorkState.CANCELLED,
                        steps=step + 1,
                        reason=token.reason,
                    )

                logger.info("Cancellation not requested.")
                await self._emit(
                    WorkEvent(type="step", invocation_id=invocation.invocation_id, step=step)
                )

            await self._emit(WorkEvent(type="completed", invocation_id=invocation.invocation_id))
            return WorkResult(
                invocation_id=invocation.invocation_id,
                state=WorkState.COMPLETED,
                steps=self.max_steps,
            )
        finally:
            for registration in registrations:
                registration.unregister()
