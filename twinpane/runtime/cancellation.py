"""Cooperative cancellation scopes for loads and background jobs."""

from __future__ import annotations

import threading


class CancelScope:
    """One cancellable unit of background work.

    Workers poll ``cancelled`` between items and before every state
    mutation. A closed scope always reads as cancelled.
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._event = threading.Event()
        self._closed = False

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def closed(self) -> bool:
        return self._closed

    def cancel(self) -> None:
        self._event.set()

    def close(self) -> None:
        """Dispose the scope; any work still holding it stops at its next check."""
        self._closed = True
        self._event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return ``cancelled``."""
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        state = "closed" if self._closed else ("cancelled" if self.cancelled else "active")
        return f"CancelScope({self.name!r}, {state})"


__all__ = ["CancelScope"]
