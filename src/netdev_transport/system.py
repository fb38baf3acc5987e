"""System transport: the ``ssh`` binary driven through a pseudo-terminal.

The transport spawns an external program (``ssh`` unless ``exec_cmd`` says
otherwise, e.g. ``docker exec`` or ``kubectl exec`` wrappers) attached to a
fresh pseudo-terminal and exchanges raw bytes with it.  Reads are bounded by
the idle timeout via ``transport_timeout``; writes go straight to the pty.

POSIX only: ``ptyprocess`` relies on ``pty.fork()``.
"""

from __future__ import annotations

import dataclasses
import functools
import logging
import os
import select
import threading
from typing import Optional

import ptyprocess
from typeguard import typechecked

from . import DEFAULT_EXEC_CMD, READ_POLL_INTERVAL_S, READ_SIZE
from .base import BaseTransportArgs, format_log_message
from .exceptions import (
    TransportAlreadyOpenError,
    TransportFailureError,
    TransportNotOpenError,
    TransportTimeoutError,
)
from .timeout import TransportResult, transport_timeout
from .types import OpenCmd, PtyDimensions

logger = logging.getLogger("netdev_transport.system")

# Appended by open_netconf(): force pty allocation, request the netconf subsystem.
NETCONF_OPEN_ARGS = ("-tt", "-s", "netconf")


@dataclasses.dataclass(frozen=True)
class SystemTransportArgs:
    """Attributes required by the system transport.

    Attributes:
        auth_private_key: Path passed to ``ssh -i``; empty for none.
        auth_strict_key: Enforce host key checking.
        ssh_config_file: Path passed to ``ssh -F``; empty means ``/dev/null``
            so no ambient ssh config leaks into the session.
        ssh_known_hosts_file: Known hosts file used when checking is strict.
    """
    auth_private_key: str = ""
    auth_strict_key: bool = True
    ssh_config_file: str = ""
    ssh_known_hosts_file: str = ""


@typechecked
class SystemTransport:
    """Byte transport over an external program running on a pseudo-terminal.

    Example::

        args = BaseTransportArgs(host="10.0.0.1", auth_username="admin")
        with SystemTransport(args, SystemTransportArgs(auth_strict_key=False)) as t:
            t.write(b"show version\\n")
            print(t.read())
    """

    def __init__(
        self,
        base_args: BaseTransportArgs,
        system_args: Optional[SystemTransportArgs] = None,
        exec_cmd: str = DEFAULT_EXEC_CMD,
    ) -> None:
        """Initialize system transport.

        Args:
            base_args: Connection parameters shared by all transports.
            system_args: System transport options (default: strict key
                checking, no key/config/known-hosts file).
            exec_cmd: Program to spawn (default: ``ssh``).
        """
        self.base_args = base_args
        self.system_args = system_args if system_args is not None else SystemTransportArgs()
        self.exec_cmd = exec_cmd or DEFAULT_EXEC_CMD
        self.open_cmd: OpenCmd = []
        self._netconf_cmd = False
        self._session: Optional[ptyprocess.PtyProcess] = None

    # ------------------------------------------------------------------
    #  Command builder
    # ------------------------------------------------------------------

    def build_open_cmd(self) -> OpenCmd:
        """Build the argument vector passed to ``exec_cmd``.

        The order is fixed so the resulting command line is reproducible.
        Any previously built vector is discarded.
        """
        base = self.base_args
        opts = self.system_args

        cmd: OpenCmd = [
            base.host,
            "-p", str(base.port),
            "-o", f"ConnectTimeout={base.timeout_socket.whole_seconds()}",
            "-o", f"ServerAliveInterval={base.timeout_transport.whole_seconds()}",
        ]

        if opts.auth_private_key:
            cmd.extend(["-i", opts.auth_private_key])

        if base.auth_username:
            cmd.extend(["-l", base.auth_username])

        if not opts.auth_strict_key:
            cmd.extend([
                "-o", "StrictHostKeyChecking=no",
                "-o", "UserKnownHostsFile=/dev/null",
            ])
        else:
            cmd.extend(["-o", "StrictHostKeyChecking=yes"])
            if opts.ssh_known_hosts_file:
                cmd.extend(["-o", f"UserKnownHostsFile={opts.ssh_known_hosts_file}"])

        if opts.ssh_config_file:
            cmd.extend(["-F", opts.ssh_config_file])
        else:
            cmd.extend(["-F", "/dev/null"])

        self.open_cmd = cmd
        self._netconf_cmd = False
        return cmd

    # ------------------------------------------------------------------
    #  Session lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Spawn ``exec_cmd`` on a pty sized ``(pty_height, pty_width)``.

        Reuses ``open_cmd`` when it is already populated, otherwise builds it.
        A vector left over from ``open_netconf()`` is always rebuilt.

        Raises:
            TransportAlreadyOpenError: If a session is already held.
            OSError: If the program cannot be spawned (passed through).
        """
        self._require_closed()

        if not self.open_cmd or self._netconf_cmd:
            self.build_open_cmd()

        self._spawn(
            (self.base_args.pty_height, self.base_args.pty_width),
            "transport",
        )

    def open_netconf(self) -> None:
        """Spawn ``exec_cmd`` requesting the ``netconf`` subsystem.

        Always rebuilds ``open_cmd`` and appends ``-tt -s netconf``.  The pty
        keeps its default size.

        Raises:
            TransportAlreadyOpenError: If a session is already held.
            OSError: If the program cannot be spawned (passed through).
        """
        self._require_closed()

        self.build_open_cmd()
        self.open_cmd.extend(NETCONF_OPEN_ARGS)
        self._netconf_cmd = True

        self._spawn(None, "netconf transport")

    def _spawn(self, dimensions: Optional[PtyDimensions], kind: str) -> None:
        argv = [self.exec_cmd, *self.open_cmd]
        logger.debug(
            "[OPEN] %s",
            self.format_log_message(
                "debug",
                f"attempting to open {kind} connection with the following command: {argv}",
            ),
        )

        try:
            if dimensions is None:
                session = ptyprocess.PtyProcess.spawn(argv)
            else:
                session = ptyprocess.PtyProcess.spawn(argv, dimensions=dimensions)
        except Exception as exc:
            logger.error(
                "[OPEN] %s",
                self.format_log_message(
                    "error", f"failed opening {kind} connection to host: {exc}",
                ),
            )
            raise

        self._session = session
        logger.debug(
            "[OPEN] %s",
            self.format_log_message("debug", f"{kind} connection to host opened (pid={session.pid})"),
        )

    def close(self) -> None:
        """Close the pty and terminate the spawned program.

        The session handle is dropped even when closing fails; the close
        error is then re-raised.
        """
        session = self._session
        if session is None:
            logger.debug(
                "[CLOSE] %s",
                self.format_log_message("debug", "close() called on already-closed transport"),
            )
            return

        try:
            session.close(force=True)
        except Exception as exc:
            logger.error(
                "[CLOSE] %s",
                self.format_log_message("error", f"error closing transport connection: {exc}"),
            )
            raise
        finally:
            self._session = None
            logger.debug(
                "[CLOSE] %s",
                self.format_log_message("debug", "transport connection to host closed"),
            )

    def is_alive(self) -> bool:
        """Return True while a session handle is held."""
        return self._session is not None

    def _require_closed(self) -> None:
        if self._session is not None:
            msg = self.format_log_message(
                "error",
                "transport already open; close() it before opening again",
            )
            logger.error("[OPEN] %s", msg)
            raise TransportAlreadyOpenError(msg)

    def _require_session(self, operation: str) -> ptyprocess.PtyProcess:
        session = self._session
        if session is None:
            raise TransportNotOpenError(
                self.format_log_message(
                    "error", f"cannot {operation}: transport is not open",
                )
            )
        return session

    # ------------------------------------------------------------------
    #  Read / write
    # ------------------------------------------------------------------

    @staticmethod
    def _read(
        session: ptyprocess.PtyProcess,
        size: int,
        cancel: threading.Event,
    ) -> TransportResult:
        """Wait for the pty to become readable, then read up to *size* bytes.

        Reads the descriptor directly; ptyprocess' buffered reader could hold
        bytes that ``select`` cannot see.  Linux reports end of stream on a
        pty master as EIO, BSDs as an empty read.
        """
        try:
            while not cancel.is_set():
                readable, _, _ = select.select([session.fd], [], [], READ_POLL_INTERVAL_S)
                if readable:
                    data = os.read(session.fd, size)
                    if not data:
                        raise EOFError("end of stream")
                    return TransportResult(result=data)
        except (EOFError, OSError, ValueError) as exc:
            logger.debug("[READ] Read worker stopped: %s: %s", type(exc).__name__, exc)
            return TransportResult(error=TransportFailureError())

        return TransportResult(error=TransportTimeoutError())

    def read(self) -> bytes:
        """Read up to ``READ_SIZE`` bytes within the idle timeout."""
        return self.read_n(READ_SIZE)

    def read_n(self, n: int) -> bytes:
        """Read up to *n* bytes within the idle timeout.

        Raises:
            TransportNotOpenError: If no session is open.
            TransportTimeoutError: If nothing arrives within the idle timeout.
            TransportFailureError: If the stream ended or the read failed.
        """
        if n <= 0:
            raise ValueError(f"Invalid read size {n!r}: must be a positive number of bytes")

        session = self._require_session("read")
        timeout = self.base_args.timeout_transport.get()

        try:
            return transport_timeout(timeout, functools.partial(self._read, session, n))
        except TransportTimeoutError:
            logger.error(
                "[READ] %s",
                self.format_log_message("error", f"timed out reading from transport after {timeout:.3f}s"),
            )
            raise
        except TransportFailureError:
            logger.error(
                "[READ] %s",
                self.format_log_message("error", "error reading from transport, cannot continue"),
            )
            raise

    def write(self, data: bytes) -> None:
        """Write *data* to the pty.  Not bounded by a timeout.

        Raises:
            TransportNotOpenError: If no session is open.
            OSError: If the write fails (passed through).
        """
        session = self._require_session("write")
        try:
            session.write(data)
        except OSError as exc:
            logger.error(
                "[WRITE] %s",
                self.format_log_message("error", f"failed writing {len(data)} bytes to transport: {exc}"),
            )
            raise

    def format_log_message(self, level: str, message: str) -> str:
        """Format *message* with this transport's host, port and *level*."""
        return format_log_message(self.base_args, level, message)

    # ---- Context manager ----

    def __enter__(self) -> SystemTransport:
        """Context manager entry - opens the transport."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        """Context manager exit - ensures the transport is closed."""
        self.close()

    def __del__(self) -> None:
        """Destructor - ensures the spawned program is not left behind."""
        try:
            self.close()
        except Exception:
            pass
