"""Runtime pieces: cancellation tokens, the unit of work, host lifetime."""

from __future__ import annotations

from .cancellation import (
    NONE,
    CancellationRegistration,
    CancellationToken,
    LinkedCancellationToken,
    linked_token,
)
from .dispatch import InvocationHandle, dispatch_invocation
from .lifecycle import HostLifetime
from .work import (
    DEFAULT_MAX_STEPS,
    DEFAULT_STEP_INTERVAL_S,
    CancellableUnitOfWork,
    EventHandler,
    Invocation,
    WorkEvent,
    WorkResult,
    WorkState,
)

__all__ = [
    "NONE",
    "DEFAULT_MAX_STEPS",
    "DEFAULT_STEP_INTERVAL_S",
    "CancellableUnitOfWork",
    "CancellationRegistration",
    "CancellationToken",
    "EventHandler",
    "HostLifetime",
    "Invocation",
    "InvocationHandle",
    "LinkedCancellationToken",
    "WorkEvent",
    "WorkResult",
    "WorkState",
    "dispatch_invocation",
    "linked_token",
]
