"""Standard transport: SSH spoken natively through paramiko.

Same contract as the system transport, without an external ``ssh`` binary.
The session handle is a paramiko ``Channel`` running either an interactive
shell (``open``) or the ``netconf`` subsystem (``open_netconf``).
"""

from __future__ import annotations

import dataclasses
import functools
import logging
import os
import socket
import threading
from typing import Optional, Tuple

import paramiko
from typeguard import typechecked

from . import READ_POLL_INTERVAL_S, READ_SIZE, SSH_PORT
from .base import BaseTransportArgs, format_log_message
from .exceptions import (
    KeyVerificationFailedError,
    TransportAlreadyOpenError,
    TransportFailureError,
    TransportNotOpenError,
    TransportTimeoutError,
)
from .timeout import TransportResult, transport_timeout

logger = logging.getLogger("netdev_transport.standard")

NETCONF_SUBSYSTEM = "netconf"
DEFAULT_KNOWN_HOSTS_FILE = os.path.join("~", ".ssh", "known_hosts")


@dataclasses.dataclass(frozen=True)
class StandardTransportArgs:
    """Attributes required by the standard transport.

    Attributes:
        auth_password: Password for password/keyboard-interactive auth.
        auth_private_key: Private key file; empty for none.
        auth_strict_key: Reject hosts whose key is not in the known hosts file.
        ssh_config_file: OpenSSH client config consulted for the target's
            hostname, port, user and identity file.
        ssh_known_hosts_file: Known hosts file for strict checking (default:
            ``~/.ssh/known_hosts``).
    """
    auth_password: str = ""
    auth_private_key: str = ""
    auth_strict_key: bool = True
    ssh_config_file: str = ""
    ssh_known_hosts_file: str = ""


class _RejectUnknownHostPolicy(paramiko.MissingHostKeyPolicy):
    """Refuse any host whose key is not already known."""

    def missing_host_key(self, client, hostname, key):  # type: ignore[no-untyped-def]
        raise KeyVerificationFailedError(
            f"ssh key verification failed: {key.get_name()} key for {hostname} "
            f"not found in known hosts"
        )


@typechecked
class StandardTransport:
    """Byte transport over a paramiko SSH channel."""

    def __init__(
        self,
        base_args: BaseTransportArgs,
        standard_args: Optional[StandardTransportArgs] = None,
    ) -> None:
        """Initialize standard transport.

        Args:
            base_args: Connection parameters shared by all transports.
            standard_args: paramiko-specific options (default: strict key
                checking against ``~/.ssh/known_hosts``, no credentials).
        """
        self.base_args = base_args
        self.standard_args = standard_args if standard_args is not None else StandardTransportArgs()
        self._client: Optional[paramiko.SSHClient] = None
        self._channel: Optional[paramiko.Channel] = None

    # ------------------------------------------------------------------
    #  Connection
    # ------------------------------------------------------------------

    def _resolve_target(self) -> Tuple[str, int, str, str]:
        """Return ``(hostname, port, username, key_filename)``.

        Values given explicitly win over the ssh config file; the config's
        port is only used while the port is left at its default.
        """
        base = self.base_args
        opts = self.standard_args

        hostname = base.host
        port = base.port
        username = base.auth_username
        key_filename = opts.auth_private_key

        if opts.ssh_config_file:
            entry = paramiko.SSHConfig.from_path(opts.ssh_config_file).lookup(base.host)
            hostname = entry.get("hostname", hostname)
            if port == SSH_PORT and "port" in entry:
                port = int(entry["port"])
            username = username or entry.get("user", "")
            identity_files = entry.get("identityfile") or []
            if not key_filename and identity_files:
                key_filename = identity_files[0]
            logger.debug(
                "[CONFIG] %s",
                self.format_log_message(
                    "debug",
                    f"resolved {base.host} via {opts.ssh_config_file} to "
                    f"{username or '(no user)'}@{hostname}:{port}",
                ),
            )

        return hostname, port, username, key_filename

    def _connect(self, kind: str) -> paramiko.SSHClient:
        opts = self.standard_args
        hostname, port, username, key_filename = self._resolve_target()
        timeout = self.base_args.timeout_socket.get()

        client = paramiko.SSHClient()
        if opts.auth_strict_key:
            known_hosts = os.path.expanduser(opts.ssh_known_hosts_file or DEFAULT_KNOWN_HOSTS_FILE)
            if os.path.isfile(known_hosts):
                client.load_host_keys(known_hosts)
            client.set_missing_host_key_policy(_RejectUnknownHostPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        logger.debug(
            "[OPEN] %s",
            self.format_log_message(
                "debug",
                f"attempting to open {kind} connection to "
                f"{username or '(no user)'}@{hostname}:{port} (timeout={timeout:.1f}s)",
            ),
        )

        try:
            client.connect(
                hostname=hostname,
                port=port,
                username=username or None,
                password=opts.auth_password or None,
                key_filename=key_filename or None,
                timeout=timeout,
                banner_timeout=timeout,
                auth_timeout=timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except (KeyVerificationFailedError, paramiko.BadHostKeyException) as exc:
            client.close()
            msg = self.format_log_message("error", f"ssh key verification failed: {exc}")
            logger.error("[OPEN] %s", msg)
            raise KeyVerificationFailedError(msg) from exc
        except socket.timeout as exc:
            client.close()
            msg = self.format_log_message(
                "error", f"timed out opening {kind} connection after {timeout:.1f}s",
            )
            logger.error("[OPEN] %s", msg)
            raise TransportTimeoutError(msg) from exc
        except Exception as exc:
            client.close()
            logger.error(
                "[OPEN] %s",
                self.format_log_message("error", f"failed opening {kind} connection to host: {exc}"),
            )
            raise

        return client

    # ------------------------------------------------------------------
    #  Session lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Connect and start an interactive shell on a ``pty_width`` x ``pty_height`` pty.

        Raises:
            TransportAlreadyOpenError: If a session is already held.
            KeyVerificationFailedError: If strict checking rejects the host key.
            TransportTimeoutError: If the TCP connect times out.
            paramiko.SSHException, OSError: Other connect failures (passed through).
        """
        self._require_closed()
        client = self._connect("transport")

        try:
            channel = client.invoke_shell(
                term="xterm",
                width=self.base_args.pty_width,
                height=self.base_args.pty_height,
            )
        except Exception as exc:
            client.close()
            logger.error(
                "[OPEN] %s",
                self.format_log_message("error", f"failed starting shell on host: {exc}"),
            )
            raise

        self._client, self._channel = client, channel
        logger.debug(
            "[OPEN] %s",
            self.format_log_message("debug", "transport connection to host opened"),
        )

    def open_netconf(self) -> None:
        """Connect and start the ``netconf`` subsystem on a new session channel.

        Raises:
            Same as ``open``.
        """
        self._require_closed()
        client = self._connect("netconf transport")

        try:
            transport = client.get_transport()
            if transport is None:
                raise paramiko.SSHException("SSH transport vanished after connect")
            channel = transport.open_session(timeout=self.base_args.timeout_socket.get())
            channel.invoke_subsystem(NETCONF_SUBSYSTEM)
        except Exception as exc:
            client.close()
            logger.error(
                "[OPEN] %s",
                self.format_log_message("error", f"failed starting netconf subsystem on host: {exc}"),
            )
            raise

        self._client, self._channel = client, channel
        logger.debug(
            "[OPEN] %s",
            self.format_log_message("debug", "netconf transport connection to host opened"),
        )

    def close(self) -> None:
        """Close the channel and the SSH connection.

        The session handle is dropped even when closing fails; the close
        error is then re-raised.
        """
        client, channel = self._client, self._channel
        if client is None and channel is None:
            logger.debug(
                "[CLOSE] %s",
                self.format_log_message("debug", "close() called on already-closed transport"),
            )
            return

        try:
            if channel is not None:
                channel.close()
            if client is not None:
                client.close()
        except Exception as exc:
            logger.error(
                "[CLOSE] %s",
                self.format_log_message("error", f"error closing transport connection: {exc}"),
            )
            raise
        finally:
            self._client = None
            self._channel = None
            logger.debug(
                "[CLOSE] %s",
                self.format_log_message("debug", "transport connection to host closed"),
            )

    def is_alive(self) -> bool:
        """Return True while a session channel is held."""
        return self._channel is not None

    def _require_closed(self) -> None:
        if self._channel is not None:
            msg = self.format_log_message(
                "error",
                "transport already open; close() it before opening again",
            )
            logger.error("[OPEN] %s", msg)
            raise TransportAlreadyOpenError(msg)

    def _require_channel(self, operation: str) -> paramiko.Channel:
        channel = self._channel
        if channel is None:
            raise TransportNotOpenError(
                self.format_log_message(
                    "error", f"cannot {operation}: transport is not open",
                )
            )
        return channel

    # ------------------------------------------------------------------
    #  Read / write
    # ------------------------------------------------------------------

    @staticmethod
    def _read(
        channel: paramiko.Channel,
        size: int,
        cancel: threading.Event,
    ) -> TransportResult:
        """Poll the channel until data arrives, the channel ends, or *cancel* is set."""
        try:
            while not cancel.is_set():
                if channel.recv_ready():
                    data = channel.recv(size)
                    if data:
                        return TransportResult(result=data)
                    return TransportResult(error=TransportFailureError())
                if channel.closed or channel.eof_received:
                    if channel.recv_ready():
                        continue
                    return TransportResult(error=TransportFailureError())
                cancel.wait(READ_POLL_INTERVAL_S)
        except (OSError, EOFError, paramiko.SSHException) as exc:
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
            TransportFailureError: If the channel closed or the read failed.
        """
        if n <= 0:
            raise ValueError(f"Invalid read size {n!r}: must be a positive number of bytes")

        channel = self._require_channel("read")
        timeout = self.base_args.timeout_transport.get()

        try:
            return transport_timeout(timeout, functools.partial(self._read, channel, n))
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
        """Send all of *data* on the channel.  Not bounded by a timeout.

        Raises:
            TransportNotOpenError: If no session is open.
            OSError, paramiko.SSHException: If sending fails (passed through).
        """
        channel = self._require_channel("write")
        try:
            channel.sendall(data)
        except (OSError, paramiko.SSHException) as exc:
            logger.error(
                "[WRITE] %s",
                self.format_log_message("error", f"failed writing {len(data)} bytes to transport: {exc}"),
            )
            raise

    def format_log_message(self, level: str, message: str) -> str:
        """Format *message* with this transport's host, port and *level*."""
        return format_log_message(self.base_args, level, message)

    # ---- Context manager ----

    def __enter__(self) -> StandardTransport:
        """Context manager entry - opens the transport."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        """Context manager exit - ensures the connection is closed."""
        self.close()

    def __del__(self) -> None:
        """Destructor - ensures the connection is closed."""
        try:
            self.close()
        except Exception:
            pass
