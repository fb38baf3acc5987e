"""Timeout guard for blocking transport operations.

Every blocking read goes through ``transport_timeout``: the read runs on its
own daemon thread while the calling thread waits on a result queue with a
deadline.  Whichever comes first wins:

* the worker's ``TransportResult`` is unwrapped and returned (or raised), or
* the deadline passes, the worker's cancellation event is set and
  ``TransportTimeoutError`` is raised.  A result delivered later is dropped.

Workers are expected to honour the cancellation event between blocking
calls.  A worker stuck inside a syscall that never returns cannot be
interrupted and stays parked until the OS or remote end releases it, so
repeated timeouts on one session should be treated as fatal for it.

Timeouts themselves live in ``TimeoutCell`` objects that any holder can
retune at runtime; transports read the current value at the start of each
operation.
"""

from __future__ import annotations

import dataclasses
import logging
import queue
import threading
from typing import Callable, Optional

from typeguard import typechecked

from .exceptions import TransportTimeoutError

logger = logging.getLogger("netdev_transport.timeout")


@typechecked
class TimeoutCell:
    """Thread-safe, shareable timeout value in seconds.

    Example::

        idle = TimeoutCell(10.0)
        args = BaseTransportArgs(host="10.0.0.1", timeout_transport=idle)
        ...
        idle.set(60.0)   # picked up by the next read on every transport
    """

    def __init__(self, seconds: float) -> None:
        self._lock = threading.Lock()
        self._seconds = self._validate(seconds)

    @staticmethod
    def _validate(seconds: float) -> float:
        if seconds <= 0:
            raise ValueError(
                f"Invalid timeout {seconds!r}: must be a positive number of seconds"
            )
        return float(seconds)

    def get(self) -> float:
        """Return the current timeout in seconds."""
        with self._lock:
            return self._seconds

    def set(self, seconds: float) -> None:
        """Replace the timeout; visible to the next operation that reads it."""
        value = self._validate(seconds)
        with self._lock:
            previous = self._seconds
            self._seconds = value
        logger.debug("[TIMEOUT] Updated %.3fs -> %.3fs", previous, value)

    def whole_seconds(self) -> int:
        """Return the timeout truncated to whole seconds, never below 1.

        ssh reads 0 as "no limit", so a sub-second value rounds up to 1.
        """
        return max(1, int(self.get()))

    def __repr__(self) -> str:
        return f"TimeoutCell({self.get()!r})"


@dataclasses.dataclass(frozen=True)
class TransportResult:
    """Outcome of a worker operation carried back across the timeout guard."""
    result: bytes = b""
    error: Optional[Exception] = None


ReadOperation = Callable[[threading.Event], TransportResult]


def transport_timeout(timeout: float, operation: ReadOperation) -> bytes:
    """Run *operation* on a worker thread, bounded by *timeout* seconds.

    Args:
        timeout: Deadline in seconds.  Zero or negative values report a
            timeout straight away without starting the operation.
        operation: Callable receiving a ``threading.Event`` that is set when
            the caller stops waiting.  Returns a ``TransportResult``.

    Returns:
        The ``result`` bytes of the operation.

    Raises:
        TransportTimeoutError: If the deadline passes first.
        Exception: The ``error`` carried by the operation's result, or any
            exception the operation raised.
    """
    if timeout <= 0:
        logger.debug("[TIMEOUT] Non-positive timeout %r, reporting timeout", timeout)
        raise TransportTimeoutError()

    results: queue.Queue = queue.Queue(maxsize=1)
    cancel = threading.Event()

    def _worker() -> None:
        try:
            outcome = operation(cancel)
        except Exception as exc:
            outcome = TransportResult(error=exc)
        results.put(outcome)

    worker = threading.Thread(target=_worker, name="transport-timeout-worker", daemon=True)
    worker.start()

    try:
        outcome = results.get(timeout=timeout)
    except queue.Empty:
        cancel.set()
        logger.debug("[TIMEOUT] Operation exceeded %.3fs, worker signalled to stop", timeout)
        raise TransportTimeoutError() from None

    if outcome.error is not None:
        raise outcome.error
    return outcome.result
