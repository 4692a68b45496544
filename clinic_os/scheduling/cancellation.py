"""Caller-supplied cancellation for long optimization runs."""

import threading

from clinic_os.scheduling.errors import OptimizationCancelled


class CancellationToken:
    """Thread-safe flag the assigner checks between requests."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OptimizationCancelled("optimization run cancelled by caller")
