# -*- coding: utf-8 -*-
"""
Deadlines and cancellation for inference calls.

A Deadline combines an optional time budget with an optional
``threading.Event``. The engine checks it at every stage boundary
and while waiting for an execution context.
"""

import threading
import time
from typing import Callable, Optional

from objdetect.core.exceptions import Cancelled


class Deadline:
    """
    Time budget and cancellation signal for a single call.

    Attributes:
        event: Event that cancels the call when set, if any.

    Example:
        >>> stop = threading.Event()
        >>> deadline = Deadline(seconds=2.0, event=stop)
        >>> deadline.expired
        False
        >>> stop.set()
        >>> deadline.expired
        True
    """

    def __init__(
        self,
        seconds: Optional[float] = None,
        event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        """
        Initialize a Deadline.

        Args:
            seconds: Time budget from now, or None for no time limit.
            event: Event that cancels the call when set.
            clock: Monotonic clock, replaceable in tests.
        """
        if seconds is not None and seconds < 0:
            raise ValueError(f"Deadline seconds must be >= 0, got {seconds}")
        self._clock = clock
        self._expires_at = None if seconds is None else clock() + seconds
        self.event = event

    def remaining(self) -> Optional[float]:
        """Seconds left, 0.0 once expired, or None if there is no time limit."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    @property
    def cancelled(self) -> bool:
        return self.event is not None and self.event.is_set()

    @property
    def expired(self) -> bool:
        if self.cancelled:
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def check(self, model_name: str, stage: str) -> None:
        """
        Raise Cancelled if the call must stop.

        Args:
            model_name: Model reported in the error.
            stage: Stage about to run, reported in the error.
        """
        if self.cancelled:
            raise Cancelled(model_name, f"Cancelled before {stage}")
        if self.expired:
            raise Cancelled(model_name, f"Deadline exceeded before {stage}")
