"""Host lifetime: the process-wide "stopping" signal."""

from __future__ import annotations

import asyncio
import logging
import platform
import signal

from .cancellation import CancellationToken

logger = logging.getLogger(__name__)


class HostLifetime:
    """Owns the token cancelled when the host process begins shutting down."""

    def __init__(self) -> None:
        self.stopping = CancellationToken()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._signals: tuple[signal.Signals, ...] = ()

    def stop(self, reason: str = "shutdown") -> None:
        """Request host shutdown (idempotent)."""
        if not self.stopping.is_cancelled():
            logger.info("Host stopping: %s", reason)
        self.stopping.cancel(reason=reason)

    def install_signal_handlers(
        self,
        loop: asyncio.AbstractEventLoop,
        signals: tuple[signal.Signals, ...] = (signal.SIGTERM,),
    ) -> None:
        """Map POSIX signals to ``stop()``. No-op on Windows."""
        if platform.system() == "Windows":
            return
        for sig in signals:
            loop.add_signal_handler(sig, self.stop, sig.name.lower())
        self._loop = loop
        self._signals = signals

    def remove_signal_handlers(self) -> None:
        """Undo ``install_signal_handlers``."""
        if self._loop is None:
            return
        for sig in self._signals:
            self._loop.remove_signal_handler(sig)
        self._loop = None
        self._signals = ()
