"""Cooperative cancellation token shared between the orchestrator and a scan."""

from __future__ import annotations

import threading

from rummage.core.errors import CancelledError


class CancellationToken:
    """Thread-safe flag checked by scanners between units of work."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: str | None = None

    def cancel(self, reason: str = "Scan cancelled by user") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledError(self.reason or "Scan cancelled")


__all__ = ["CancellationToken"]
