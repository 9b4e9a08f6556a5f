"""Error types with actionable messages."""


class QueueCancelError(Exception):
    """Base class for queue-cancel errors."""


class ConfigError(QueueCancelError, ValueError):
    """Raised when worker configuration is missing or invalid."""

    def __init__(self, details: str) -> None:
        super().__init__(f"Invalid configuration: {details}")


class CliUsageError(QueueCancelError, ValueError):
    """Base class for user-facing CLI usage errors."""


class NoMatchingInvocationError(CliUsageError):
    """Raised when a kill target does not match any running invocation."""

    def __init__(self, prefix: str) -> None:
        super().__init__(
            f"No running invocation matches '{prefix}'. Use `queue-cancel ps` to list them."
        )


class MissingKillTargetError(CliUsageError):
    """Raised when kill is called without an ID prefix or --all."""

    def __init__(self) -> None:
        super().__init__("Pass an invocation ID prefix or --all.")
