"""Cooperative cancellation shared by the run loop and its backoff sleeps."""

from __future__ import annotations

import threading


class CancellationToken:
    """A one-way flag; once cancelled it stays cancelled."""

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if cancelled meanwhile."""
        if seconds <= 0:
            return self.cancelled
        return self._event.wait(seconds)
