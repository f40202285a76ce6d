"""Cooperative cancellation and execution deadlines."""

import threading
import time
from typing import Callable, Optional

from lakequery.common.exceptions import QueryCancelledError


class CancellationToken:
    """Thread-safe cancellation flag shared between a caller and one execution.

    The execution checks the token before every network call and sleeps on
    it between polls, so a cancel wakes a sleeping poller immediately. A
    request already sent is never interrupted; the execution notices the
    cancel once that request returns.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "Cancelled by caller") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise QueryCancelledError(self._reason or "Cancelled by caller")

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if cancelled meanwhile."""
        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)


class Deadline:
    """Wall-clock budget of one execution, started at submit time."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.seconds = seconds
        self._clock = clock
        self._expires_at = clock() + seconds

    @property
    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self._clock() >= self._expires_at
