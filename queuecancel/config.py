"""Worker configuration: environment defaults plus optional YAML file."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .queue import DEFAULT_QUEUE_NAME, default_queue_root
from .runtime.work import DEFAULT_MAX_STEPS, DEFAULT_STEP_INTERVAL_S

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class WorkerConfig:
    """How the worker consumes its queue and runs each unit of work.

    Unknown YAML fields are preserved in ``extras``.

    Usage::

        config = WorkerConfig.from_file("worker.yaml")
        config.validate()
    """

    max_steps: int = field(
        default_factory=lambda: _env_int("QUEUECANCEL_MAX_STEPS", DEFAULT_MAX_STEPS)
    )
    step_interval: float = field(
        default_factory=lambda: _env_float("QUEUECANCEL_STEP_INTERVAL", DEFAULT_STEP_INTERVAL_S)
    )
    queue: str = field(default_factory=lambda: os.getenv("QUEUECANCEL_QUEUE", DEFAULT_QUEUE_NAME))
    queue_dir: str = field(default_factory=lambda: str(default_queue_root()))
    poll_interval: float = field(
        default_factory=lambda: _env_float("QUEUECANCEL_POLL_INTERVAL", 1.0)
    )
    log_level: str = field(default_factory=lambda: os.getenv("QUEUECANCEL_LOG_LEVEL", "INFO"))
    extras: dict[str, Any] = field(default_factory=dict)

    _KNOWN_FIELDS = frozenset(
        {"max_steps", "step_interval", "queue", "queue_dir", "poll_interval", "log_level"}
    )

    @classmethod
    def from_file(cls, path: str | Path) -> WorkerConfig:
        """Load config from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"config file not found: {path}")
        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ConfigError(f"{path} is not valid YAML ({exc})") from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"config file must contain a YAML mapping: {path}")
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> WorkerConfig:
        """Build a WorkerConfig from a plain dict, preserving unknown keys in extras."""
        known: dict[str, Any] = {}
        extras: dict[str, Any] = {}
        for key, value in data.items():
            if key in cls._KNOWN_FIELDS:
                known[key] = value
            else:
                extras[key] = value
        known["extras"] = extras
        return cls(**known)

    def validate(self) -> WorkerConfig:
        """Raise ConfigError for out-of-range values; returns self for chaining."""
        if (
            isinstance(self.max_steps, bool)
            or not isinstance(self.max_steps, int)
            or self.max_steps < 1
        ):
            raise ConfigError(f"max_steps must be a positive integer, got {self.max_steps!r}")
        for name in ("step_interval", "poll_interval"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ConfigError(f"{name} must be a non-negative number, got {value!r}")
        if not self.queue:
            raise ConfigError("queue name must not be empty")
        if not isinstance(self.log_level, str) or self.log_level.upper() not in _LOG_LEVELS:
            raise ConfigError(
                f"log_level must be one of {', '.join(sorted(_LOG_LEVELS))}, got {self.log_level!r}"
            )
        return self

    @property
    def level(self) -> int:
        """Numeric logging level."""
        return logging.getLevelName(self.log_level.upper())
