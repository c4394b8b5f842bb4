from __future__ import annotations

import threading

from .errors import MergeCancelled


class CancelToken:
    """Cooperative cancellation flag shared by the stages of one merge."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise MergeCancelled("merge cancelled")
