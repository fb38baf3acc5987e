"""Transport contract shared by every transport variant."""

from __future__ import annotations

import dataclasses
from typing import Protocol, runtime_checkable

from . import PTY_HEIGHT, PTY_WIDTH, SSH_PORT, TIMEOUT_SOCKET, TIMEOUT_TRANSPORT
from .timeout import TimeoutCell


@dataclasses.dataclass
class BaseTransportArgs:
    """Connection parameters required by any transport type.

    The two timeouts are ``TimeoutCell`` objects so the layer above can
    retune them while transports hold a reference to the same args.
    """
    host: str
    port: int = SSH_PORT
    auth_username: str = ""
    timeout_socket: TimeoutCell = dataclasses.field(
        default_factory=lambda: TimeoutCell(TIMEOUT_SOCKET)
    )
    timeout_transport: TimeoutCell = dataclasses.field(
        default_factory=lambda: TimeoutCell(TIMEOUT_TRANSPORT)
    )
    pty_height: int = PTY_HEIGHT
    pty_width: int = PTY_WIDTH


def format_log_message(args: BaseTransportArgs, level: str, message: str) -> str:
    """Attribute *message* to the transport's host, port and log level."""
    return f"{level}::{args.host}::{args.port}::{message}"


@runtime_checkable
class Transport(Protocol):
    """Operations every transport variant provides.

    Failures are raised as exceptions.  ``is_alive`` must not touch the
    session; it only reports whether a session handle is held.
    """

    def open(self) -> None:
        ...

    def open_netconf(self) -> None:
        ...

    def close(self) -> None:
        ...

    def is_alive(self) -> bool:
        ...

    def read(self) -> bytes:
        ...

    def write(self, data: bytes) -> None:
        ...

    def format_log_message(self, level: str, message: str) -> str:
        ...
