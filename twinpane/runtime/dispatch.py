"""Single-consumer UI dispatch queue.

Background workers never touch rendered state directly. They ``post``
closures here and the UI thread runs them from ``drain``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from queue import Empty, Queue

LOGGER = logging.getLogger(__name__)


class UiDispatcher:
    """Thread-safe submission queue consumed only by the UI loop."""

    def __init__(self) -> None:
        self._queue: Queue[Callable[[], None]] = Queue()
        self._ui_thread_id = threading.get_ident()

    def post(self, action: Callable[[], None]) -> None:
        """Queue ``action`` for the UI thread. Safe from any thread."""
        self._queue.put(action)

    def bind_to_current_thread(self) -> None:
        """Declare the calling thread as the UI thread."""
        self._ui_thread_id = threading.get_ident()

    def on_ui_thread(self) -> bool:
        return threading.get_ident() == self._ui_thread_id

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def drain(self, max_items: int | None = None, timeout_seconds: float = 0.0) -> int:
        """Run queued actions in submission order and return how many ran.

        With ``timeout_seconds`` the first action is awaited that long. An
        action that raises is logged and the drain continues.
        """
        processed = 0
        if timeout_seconds > 0:
            try:
                first = self._queue.get(timeout=timeout_seconds)
            except Empty:
                return 0
            self._run(first)
            processed += 1

        while max_items is None or processed < max_items:
            try:
                action = self._queue.get_nowait()
            except Empty:
                break
            self._run(action)
            processed += 1
        return processed

    def pump_until(
        self,
        predicate: Callable[[], bool],
        timeout_seconds: float = 5.0,
        *,
        poll_seconds: float = 0.01,
    ) -> bool:
        """Drain repeatedly until ``predicate()`` holds; return whether it did."""
        deadline = time.monotonic() + timeout_seconds
        while True:
            self.drain()
            if predicate():
                return True
            if time.monotonic() >= deadline:
                return False
            self.drain(timeout_seconds=poll_seconds)

    @staticmethod
    def _run(action: Callable[[], None]) -> None:
        try:
            action()
        except Exception:
            LOGGER.exception("UI action failed")


__all__ = ["UiDispatcher"]
