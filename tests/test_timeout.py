"""
Timeout guard and TimeoutCell test suite.

Uses synthetic fast/slow operations; no sessions, no network.

Run with full visibility:
    pytest tests/test_timeout.py -v -s
"""

from __future__ import annotations

import sys
import threading
import time
from typing import List

import pytest

# ---------------------------------------------------------------------------
# Dependency gate
# ---------------------------------------------------------------------------
_MISSING: List[str] = []

try:
    from typeguard import typechecked  # noqa: F401
except ImportError:
    _MISSING.append("typeguard")

if _MISSING:
    print(
        "\n"
        "=" * 72 + "\n"
        "  MISSING REQUIRED LIBRARIES\n"
        "=" * 72 + "\n"
        f"  The following packages are not installed: {', '.join(_MISSING)}\n"
        f"  Install them with:  pip install {' '.join(_MISSING)}\n"
        "=" * 72 + "\n",
        file=sys.stderr,
    )
    pytest.skip(
        f"Required libraries missing: {', '.join(_MISSING)}",
        allow_module_level=True,
    )

from netdev_transport.exceptions import (
    NetdevTransportError,
    TransportFailureError,
    TransportTimeoutError,
)
from netdev_transport.timeout import TimeoutCell, TransportResult, transport_timeout


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _report(label: str, detail: str = "") -> None:
    """Uniform test-level print."""
    if detail:
        print(f"  [{label}] {detail}")
    else:
        print(f"  [{label}]")


def _sleeping_operation(delay_s: float, payload: bytes = b"payload"):
    """Return an operation that sleeps *delay_s* then yields *payload*."""
    def _operation(cancel: threading.Event) -> TransportResult:
        time.sleep(delay_s)
        return TransportResult(result=payload)
    return _operation


# ═══════════════════════════════════════════════════════════════════════════
#  TESTS — Timeout guard
# ═══════════════════════════════════════════════════════════════════════════

class TestTransportTimeout:
    """Race between an operation and its deadline."""

    def test_fast_operation_returns_result(self) -> None:
        _report("TEST", "10ms operation against a 50ms deadline")
        data = transport_timeout(0.05, _sleeping_operation(0.01, b"fast"))
        _report("RESULT", repr(data))
        assert data == b"fast"
        _report("PASS", "Result returned before deadline")

    def test_slow_operation_times_out(self) -> None:
        _report("TEST", "200ms operation against a 50ms deadline")
        start = time.monotonic()
        with pytest.raises(TransportTimeoutError):
            transport_timeout(0.05, _sleeping_operation(0.2, b"slow"))
        elapsed = time.monotonic() - start
        _report("RESULT", f"Timed out after {elapsed:.3f}s")
        assert elapsed < 0.2
        _report("PASS", "Timeout raised without waiting for the worker")

    @pytest.mark.parametrize("duration", [0, -1.0])
    def test_non_positive_duration_times_out(self, duration: float) -> None:
        _report("TEST", f"Duration {duration!r} must always report timeout")
        started = threading.Event()

        def _operation(cancel: threading.Event) -> TransportResult:
            started.set()
            return TransportResult(result=b"never")

        with pytest.raises(TransportTimeoutError):
            transport_timeout(duration, _operation)
        assert not started.is_set()
        _report("PASS", "Expired deadline reported timeout, operation not started")

    def test_result_error_is_raised(self) -> None:
        _report("TEST", "Error carried in TransportResult is raised to the caller")

        def _operation(cancel: threading.Event) -> TransportResult:
            return TransportResult(error=TransportFailureError())

        with pytest.raises(TransportFailureError):
            transport_timeout(1.0, _operation)
        _report("PASS", "TransportFailureError propagated")

    def test_raised_exception_is_propagated(self) -> None:
        _report("TEST", "Exception raised inside the worker reaches the caller")

        def _operation(cancel: threading.Event) -> TransportResult:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            transport_timeout(1.0, _operation)
        _report("PASS", "RuntimeError propagated instead of a timeout")

    def test_cancel_event_set_on_timeout(self) -> None:
        _report("TEST", "Worker sees its cancel event after the deadline")
        observed = threading.Event()

        def _operation(cancel: threading.Event) -> TransportResult:
            if cancel.wait(2.0):
                observed.set()
            return TransportResult(result=b"late")

        with pytest.raises(TransportTimeoutError):
            transport_timeout(0.05, _operation)

        assert observed.wait(1.0)
        _report("PASS", "Cancellation signalled to the abandoned worker")

    def test_late_result_is_discarded(self) -> None:
        _report("TEST", "A late result does not leak into the next call")
        release = threading.Event()

        def _slow(cancel: threading.Event) -> TransportResult:
            release.wait(2.0)
            return TransportResult(result=b"stale")

        with pytest.raises(TransportTimeoutError):
            transport_timeout(0.05, _slow)
        release.set()

        data = transport_timeout(1.0, _sleeping_operation(0.0, b"fresh"))
        assert data == b"fresh"
        _report("PASS", "Second call got its own result")

    def test_worker_is_daemon(self) -> None:
        _report("TEST", "Abandoned workers must not block interpreter exit")
        seen: List[bool] = []

        def _operation(cancel: threading.Event) -> TransportResult:
            seen.append(threading.current_thread().daemon)
            return TransportResult(result=b"")

        transport_timeout(1.0, _operation)
        assert seen == [True]
        _report("PASS", "Worker thread is a daemon")


# ═══════════════════════════════════════════════════════════════════════════
#  TESTS — TimeoutCell
# ═══════════════════════════════════════════════════════════════════════════

class TestTimeoutCell:
    """Shared, live-tunable timeout values."""

    def test_get_and_set(self) -> None:
        cell = TimeoutCell(5)
        assert cell.get() == 5.0
        cell.set(30.5)
        assert cell.get() == 30.5
        _report("PASS", "get()/set() round trip")

    def test_whole_seconds_truncates(self) -> None:
        assert TimeoutCell(2.9).whole_seconds() == 2
        assert TimeoutCell(30).whole_seconds() == 30
        _report("PASS", "whole_seconds() truncates")

    def test_whole_seconds_never_zero(self) -> None:
        assert TimeoutCell(0.5).whole_seconds() == 1
        assert TimeoutCell(0.001).whole_seconds() == 1
        _report("PASS", "Sub-second timeouts round up to 1")

    @pytest.mark.parametrize("bad", [0, -5, -0.1])
    def test_rejects_non_positive(self, bad: float) -> None:
        with pytest.raises(ValueError):
            TimeoutCell(bad)
        cell = TimeoutCell(1)
        with pytest.raises(ValueError):
            cell.set(bad)
        assert cell.get() == 1.0
        _report("PASS", f"{bad!r} rejected, previous value kept")

    def test_update_seen_by_next_guarded_call(self) -> None:
        _report("TEST", "Raising the cell lets a previously-too-slow operation finish")
        cell = TimeoutCell(0.05)

        with pytest.raises(TransportTimeoutError):
            transport_timeout(cell.get(), _sleeping_operation(0.2))

        cell.set(1.0)
        assert transport_timeout(cell.get(), _sleeping_operation(0.2, b"ok")) == b"ok"
        _report("PASS", "Updated timeout observed immediately")

    def test_concurrent_updates(self) -> None:
        cell = TimeoutCell(1)

        def _writer(value: float) -> None:
            for _ in range(200):
                cell.set(value)

        threads = [threading.Thread(target=_writer, args=(v,)) for v in (1.0, 2.0, 3.0)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert cell.get() in (1.0, 2.0, 3.0)
        _report("PASS", "Concurrent set() leaves a valid value")


class TestExceptionHierarchy:
    """Timeout and failure are distinct conditions under one base."""

    def test_hierarchy(self) -> None:
        assert issubclass(TransportTimeoutError, NetdevTransportError)
        assert issubclass(TransportFailureError, NetdevTransportError)
        assert not issubclass(TransportTimeoutError, TransportFailureError)
        assert str(TransportTimeoutError()) == "transport operation timed out"
        assert str(TransportFailureError()) == "error reading from transport, cannot continue"
        _report("PASS", "Exception hierarchy is correct")
