"""queue-cancel: a queue-triggered worker with cooperative cancellation."""

__version__ = "0.1.0"

from .config import WorkerConfig
from .errors import CliUsageError, ConfigError, QueueCancelError
from .queue import DirectoryQueue, QueueMessage
from .runtime import (
    NONE,
    CancellableUnitOfWork,
    CancellationRegistration,
    CancellationToken,
    HostLifetime,
    Invocation,
    InvocationHandle,
    WorkEvent,
    WorkResult,
    WorkState,
    dispatch_invocation,
    linked_token,
)
from .signals import SignalManager
from .worker import QueueWorker

__all__ = [
    "__version__",
    "NONE",
    "CancellableUnitOfWork",
    "CancellationRegistration",
    "CancellationToken",
    "CliUsageError",
    "ConfigError",
    "DirectoryQueue",
    "HostLifetime",
    "Invocation",
    "InvocationHandle",
    "QueueCancelError",
    "QueueMessage",
    "QueueWorker",
    "SignalManager",
    "WorkEvent",
    "WorkResult",
    "WorkState",
    "WorkerConfig",
    "dispatch_invocation",
    "linked_token",
]
