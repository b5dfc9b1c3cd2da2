# -*- coding: utf-8 -*-
"""
Execution context pool.

Backends such as ``cv2.dnn.Net`` cannot run two forward passes on one
context at the same time. The pool creates a fixed number of contexts
up front and lends each to one caller at a time.
"""

import queue
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

from objdetect.core.interfaces import ForwardPass
from objdetect.core.exceptions import Cancelled

# Slice used when waiting without a time limit, so cancellation events are noticed
_POLL_INTERVAL = 0.05


class PoolClosedError(RuntimeError):
    """Raised when a context is requested from a closed pool."""

    pass


class ContextPool:
    """
    Fixed-size pool of ForwardPass execution contexts.

    Attributes:
        name: Model name used in error messages.
        size: Number of contexts in the pool.

    Example:
        >>> pool = ContextPool(lambda: OpenCVDnnBackend(path), size=2, name="yolov10s")
        >>> with pool.checkout() as context:
        ...     outputs = context.forward(tensor)
    """

    def __init__(
        self,
        factory: Callable[[], ForwardPass],
        size: int = 1,
        name: str = "model"
    ) -> None:
        """
        Create the pool and all of its contexts.

        If a context fails to construct, every context created so far
        is closed and the exception propagates.

        Args:
            factory: Callable creating one execution context.
            size: Number of contexts.
            name: Model name used in error messages.
        """
        if size < 1:
            raise ValueError(f"Pool size must be >= 1, got {size}")

        self.name = name
        self.size = size
        self._contexts: List[ForwardPass] = []
        self._available: "queue.Queue[ForwardPass]" = queue.Queue()
        self._closed = False
        self._lock = threading.Lock()

        try:
            for _ in range(size):
                self._contexts.append(factory())
        except BaseException:
            self._close_all()
            raise

        for context in self._contexts:
            self._available.put(context)

    @property
    def contexts(self) -> List[ForwardPass]:
        return list(self._contexts)

    @property
    def closed(self) -> bool:
        return self._closed

    def _acquire(
        self,
        timeout: Optional[float],
        is_cancelled: Optional[Callable[[], bool]]
    ) -> ForwardPass:
        if timeout is None and is_cancelled is None:
            return self._available.get()

        waited = 0.0
        while True:
            if is_cancelled is not None and is_cancelled():
                raise Cancelled(self.name, "Cancelled while waiting for an execution context")

            step = _POLL_INTERVAL
            if timeout is not None:
                step = min(step, max(0.0, timeout - waited))
            try:
                return self._available.get(timeout=step) if step > 0 else self._available.get_nowait()
            except queue.Empty:
                waited += step
                if timeout is not None and waited >= timeout:
                    raise Cancelled(
                        self.name,
                        f"No execution context became free within {timeout:.3f}s"
                    )

    @contextmanager
    def checkout(
        self,
        timeout: Optional[float] = None,
        is_cancelled: Optional[Callable[[], bool]] = None
    ) -> Iterator[ForwardPass]:
        """
        Borrow a context for the duration of a ``with`` block.

        Args:
            timeout: Maximum seconds to wait for a free context.
            is_cancelled: Polled while waiting; returning True aborts.

        Yields:
            An execution context owned exclusively by the caller.

        Raises:
            Cancelled: If the wait times out or is cancelled.
            PoolClosedError: If the pool has been closed.
        """
        if self._closed:
            raise PoolClosedError(f"[{self.name}] Context pool is closed")

        context = self._acquire(timeout, is_cancelled)
        if self._closed:
            self._available.put(context)
            raise PoolClosedError(f"[{self.name}] Context pool is closed")
        try:
            yield context
        finally:
            self._available.put(context)

    def _close_all(self) -> None:
        for context in self._contexts:
            try:
                context.close()
            except Exception as e:
                print(f"[{self.name}] Failed to close execution context: {e}")
        self._contexts = []

    def close(self) -> None:
        """Close every context. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._close_all()
