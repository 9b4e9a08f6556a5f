"""Cancellation primitives shared between the host and running invocations."""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime, timezone

CancelCallback = Callable[[], object]


class CancellationRegistration:
    """Handle for a callback registered on a token."""

    def __init__(self, token: CancellationToken, callback: CancelCallback | None) -> None:
        self._token = token
        self._callback = callback

    def unregister(self) -> bool:
        """Remove the callback. Returns True if it was still pending."""
        if self._callback is None:
            return False
        removed = self._token._remove(self._callback)
        self._callback = None
        return removed

    def __enter__(self) -> CancellationRegistration:
        return self

    def __exit__(self, *exc: object) -> None:
        self.unregister()


class CancellationToken:
    """Cooperative cancellation token: a one-way latch plus one-shot callbacks.

    Tokens compare by identity. Two tokens that are both un-cancelled are
    still different tokens, so ``token_a == token_b`` only when they are the
    same object.

    Usage::

        token = CancellationToken()
        token.register(lambda: print("cancelled"))
        ...
        token.cancel(reason="shutdown")
        assert token.is_cancelled()
    """

    __slots__ = ("reason", "cancelled_at", "_cancelled", "_callbacks", "_lock", "_cancellable")

    def __init__(self, *, cancellable: bool = True) -> None:
        self.reason: str | None = None
        self.cancelled_at: datetime | None = None
        self._cancelled = False
        self._callbacks: list[CancelCallback] = []
        self._lock = threading.Lock()
        self._cancellable = cancellable

    @property
    def can_be_cancelled(self) -> bool:
        """False only for tokens that can never fire (see ``NONE``)."""
        return self._cancellable

    def cancel(self, reason: str = "requested") -> None:
        """Mark token as cancelled (idempotent) and fire pending callbacks.

        Every callback runs even if an earlier one raises. A single failure is
        re-raised as-is; several are raised together as an ``ExceptionGroup``.
        """
        if not self._cancellable:
            return
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            self.reason = reason
            self.cancelled_at = datetime.now(timezone.utc)
            callbacks, self._callbacks = self._callbacks, []

        errors: list[Exception] = []
        for callback in callbacks:
            try:
                callback()
            except Exception as exc:
                errors.append(exc)
        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise ExceptionGroup("cancellation callbacks failed", errors)

    def is_cancelled(self) -> bool:
        """Return True if cancellation was requested."""
        return self._cancelled

    def register(self, callback: CancelCallback) -> CancellationRegistration:
        """Register a one-shot callback fired when the token is cancelled.

        If the token is already cancelled the callback runs immediately.
        """
        with self._lock:
            if not self._cancelled:
                if self._cancellable:
                    self._callbacks.append(callback)
                    return CancellationRegistration(self, callback)
                return CancellationRegistration(self, None)
        callback()
        return CancellationRegistration(self, None)

    def _remove(self, callback: CancelCallback) -> bool:
        with self._lock:
            for index, registered in enumerate(self._callbacks):
                if registered is callback:
                    del self._callbacks[index]
                    return True
        return False

    def __repr__(self) -> str:
        if self is NONE:
            return "CancellationToken.NONE"
        state = f"cancelled reason={self.reason!r}" if self._cancelled else "active"
        return f"<CancellationToken {state} at {id(self):#x}>"


# Shared token that never fires; the default when a caller offers no token.
NONE = CancellationToken(cancellable=False)


class LinkedCancellationToken(CancellationToken):
    """Token that is cancelled as soon as any of its parents is."""

    __slots__ = ("parents", "_registrations")

    def __init__(self, parents: tuple[CancellationToken, ...]) -> None:
        super().__init__()
        self.parents = parents
        self._registrations: list[CancellationRegistration] = []
        for parent in parents:
            self._registrations.append(
                parent.register(lambda parent=parent: self.cancel(parent.reason or "requested"))
            )
            if self._cancelled:
                break

    def close(self) -> None:
        """Detach from the parents; the token keeps its current state."""
        for registration in self._registrations:
            registration.unregister()
        self._registrations.clear()


def linked_token(*parents: CancellationToken) -> LinkedCancellationToken:
    """Create a token cancelled when any of ``parents`` is cancelled."""
    return LinkedCancellationToken(parents)
