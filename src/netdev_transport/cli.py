"""Command-line interface for Netdev Transport."""

from __future__ import annotations

import argparse
import shlex
import sys
from typing import List, Optional

from . import (
    DEFAULT_DEVICE,
    DEFAULT_EXEC_CMD,
    STANDARD_TRANSPORT_NAME,
    SYSTEM_TRANSPORT_NAME,
)
from .base import BaseTransportArgs
from .exceptions import TransportFailureError, TransportTimeoutError
from .factory import SUPPORTED_TRANSPORTS, new_transport
from .standard import StandardTransportArgs
from .system import NETCONF_OPEN_ARGS, SystemTransport, SystemTransportArgs
from .timeout import TimeoutCell


def create_base_args(args) -> BaseTransportArgs:
    """Create connection parameters from parsed CLI arguments."""
    return BaseTransportArgs(
        host=args.host,
        port=args.port,
        auth_username=args.username,
        timeout_socket=TimeoutCell(args.timeout_socket),
        timeout_transport=TimeoutCell(args.timeout_transport),
    )


def create_system_args(args) -> SystemTransportArgs:
    """Create system transport options from parsed CLI arguments."""
    return SystemTransportArgs(
        auth_private_key=args.private_key,
        auth_strict_key=args.strict_key,
        ssh_config_file=args.ssh_config_file,
        ssh_known_hosts_file=args.known_hosts_file,
    )


def create_standard_args(args) -> StandardTransportArgs:
    """Create standard transport options from parsed CLI arguments."""
    return StandardTransportArgs(
        auth_password=args.password,
        auth_private_key=args.private_key,
        auth_strict_key=args.strict_key,
        ssh_config_file=args.ssh_config_file,
        ssh_known_hosts_file=args.known_hosts_file,
    )


def command_argv(args) -> int:
    """Print the command line the system transport would spawn."""
    try:
        transport = SystemTransport(
            create_base_args(args), create_system_args(args), exec_cmd=args.exec_cmd,
        )
        open_cmd = transport.build_open_cmd()
        if args.netconf:
            open_cmd.extend(NETCONF_OPEN_ARGS)

        print(shlex.join([transport.exec_cmd, *open_cmd]))
        return 0

    except Exception as e:
        print(f"Error: {str(e)}", file=sys.stderr)
        return 1


def command_probe(args) -> int:
    """Open a session, optionally send a line, print output until idle."""
    try:
        base_args = create_base_args(args)
        if args.transport == SYSTEM_TRANSPORT_NAME:
            transport = new_transport(
                args.transport, base_args, create_system_args(args), exec_cmd=args.exec_cmd,
            )
        else:
            transport = new_transport(args.transport, base_args, create_standard_args(args))

        if args.netconf:
            transport.open_netconf()
        else:
            transport.open()

        chunks: List[bytes] = []
        try:
            if args.send is not None:
                transport.write(args.send.encode("utf-8") + b"\n")

            while True:
                try:
                    chunks.append(transport.read())
                except TransportTimeoutError:
                    break
                except TransportFailureError:
                    print("[session ended by remote side]", file=sys.stderr)
                    break
        finally:
            transport.close()

        print(b"".join(chunks).decode("utf-8", errors="replace"), end="")
        return 0

    except Exception as e:
        print(f"Error: {str(e)}", file=sys.stderr)
        return 1


def _add_connection_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--host", default=DEFAULT_DEVICE["host"],
        help="Device hostname or IP (default: $NETDEV_HOST or %(default)s)",
    )
    parser.add_argument(
        "--port", type=int, default=int(DEFAULT_DEVICE["port"]),
        help="SSH port (default: %(default)s)",
    )
    parser.add_argument(
        "--username", default=DEFAULT_DEVICE["username"],
        help="Login username (default: $NETDEV_USER)",
    )
    parser.add_argument(
        "--timeout-socket", type=float, default=float(DEFAULT_DEVICE["timeout_socket"]),
        help="Connect timeout in seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--timeout-transport", type=float, default=float(DEFAULT_DEVICE["timeout_transport"]),
        help="Idle read timeout in seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--private-key", default="",
        help="Private key file",
    )
    parser.add_argument(
        "--no-strict-key", dest="strict_key", action="store_false", default=True,
        help="Disable host key checking",
    )
    parser.add_argument(
        "--ssh-config-file", default="",
        help="OpenSSH client config file (default: none, ambient config ignored)",
    )
    parser.add_argument(
        "--known-hosts-file", default="",
        help="Known hosts file used with strict host key checking",
    )
    parser.add_argument(
        "--exec-cmd", default=DEFAULT_EXEC_CMD,
        help="Program spawned by the system transport (default: %(default)s)",
    )
    parser.add_argument(
        "--netconf", action="store_true", default=False,
        help="Open the netconf subsystem instead of an interactive shell",
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="Netdev Transport - raw byte sessions with network devices"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Show the spawned command line
    argv_parser = subparsers.add_parser(
        "argv", help="Print the command the system transport would spawn",
    )
    _add_connection_arguments(argv_parser)
    argv_parser.set_defaults(func=command_argv)

    # Open, send, read until idle
    probe_parser = subparsers.add_parser(
        "probe", help="Open a session, send a line, print output until idle",
    )
    _add_connection_arguments(probe_parser)
    probe_parser.add_argument(
        "--transport", choices=SUPPORTED_TRANSPORTS, default=SYSTEM_TRANSPORT_NAME,
        help="Transport type (default: %(default)s)",
    )
    probe_parser.add_argument(
        "--password", default=DEFAULT_DEVICE["password"],
        help=f"Password, {STANDARD_TRANSPORT_NAME} transport only (default: $NETDEV_PASS)",
    )
    probe_parser.add_argument(
        "--send", default=None,
        help="Line to send once the session is open",
    )
    probe_parser.set_defaults(func=command_probe)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
