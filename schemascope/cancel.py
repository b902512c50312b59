"""Cancellation and deadlines for a running analysis."""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

from .errors import AnalysisCancelledError

logger = logging.getLogger(__name__)


class CancelToken:
    """Shared cancellation signal, optionally bound to a deadline.

    Drivers check the token around every catalog query. A query that is
    already running is stopped through the interrupt callbacks registered
    with :meth:`interrupting`, which fire on :meth:`cancel` or when the
    deadline passes. It is safe to call ``cancel()`` from another thread.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._expired = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []
        self.deadline: Optional[float] = None
        if timeout is not None:
            self.deadline = time.monotonic() + timeout

    def cancel(self) -> None:
        self._event.set()
        self._interrupt()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set() or self._expired.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or ``None`` without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def error(self, operation: str, table: Optional[str] = None) -> AnalysisCancelledError:
        reason = "cancelled" if self._event.is_set() else "deadline exceeded"
        message = f"Analysis {reason} during {operation}"
        if table:
            message += f" of '{table}'"
        return AnalysisCancelledError(message, details={"operation": operation, "table": table, "reason": reason})

    def raise_if_cancelled(self, operation: str, table: Optional[str] = None) -> None:
        if self.cancelled:
            raise self.error(operation, table)

    @contextmanager
    def interrupting(self, callback: Callable[[], None]) -> Iterator[None]:
        """Call ``callback`` if the token is cancelled or expires inside the block.

        Example:
            with token.interrupting(conn.interrupt):
                run_queries()
        """
        with self._lock:
            self._callbacks.append(callback)

        timer = None
        remaining = self.remaining()
        if remaining is not None:
            timer = threading.Timer(remaining, self._expire)
            timer.daemon = True
            timer.start()

        try:
            yield
        finally:
            if timer is not None:
                timer.cancel()
            with self._lock:
                self._callbacks.remove(callback)

    def _expire(self) -> None:
        self._expired.set()
        self._interrupt()

    def _interrupt(self) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                # The cancelled flag still stops the next query
                logger.warning("Failed to interrupt running query: %s", e)
