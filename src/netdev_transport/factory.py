"""Transport selection by name."""

from __future__ import annotations

import logging
from typing import Optional, Union, TYPE_CHECKING

from . import STANDARD_TRANSPORT_NAME, SYSTEM_TRANSPORT_NAME
from .base import BaseTransportArgs, Transport
from .exceptions import UnknownTransportError

if TYPE_CHECKING:
    from .standard import StandardTransportArgs
    from .system import SystemTransportArgs

logger = logging.getLogger("netdev_transport.factory")

SUPPORTED_TRANSPORTS = (SYSTEM_TRANSPORT_NAME, STANDARD_TRANSPORT_NAME)


def new_transport(
    transport_name: str,
    base_args: BaseTransportArgs,
    transport_args: Optional[Union[SystemTransportArgs, StandardTransportArgs]] = None,
    **kwargs,
) -> Transport:
    """Create an unopened transport of the requested type.

    The name is checked before any variant module is imported, so an
    unsupported name never allocates anything.

    Args:
        transport_name: ``"system"`` or ``"standard"``.
        base_args: Connection parameters.
        transport_args: ``SystemTransportArgs`` or ``StandardTransportArgs``
            matching *transport_name*; defaults when omitted.
        **kwargs: Extra keyword arguments for the transport constructor
            (e.g. ``exec_cmd`` for the system transport).

    Raises:
        UnknownTransportError: If *transport_name* is not supported.
        typeguard.TypeCheckError: If *transport_args* does not match the
            transport type.
    """
    if transport_name not in SUPPORTED_TRANSPORTS:
        msg = (
            f"unknown transport provided: {transport_name!r} "
            f"(supported: {', '.join(SUPPORTED_TRANSPORTS)})"
        )
        logger.error("[FACTORY] %s", msg)
        raise UnknownTransportError(msg)

    logger.debug(
        "[FACTORY] Creating %s transport for %s:%d",
        transport_name, base_args.host, base_args.port,
    )

    if transport_name == SYSTEM_TRANSPORT_NAME:
        from .system import SystemTransport

        return SystemTransport(base_args, transport_args, **kwargs)

    from .standard import StandardTransport

    return StandardTransport(base_args, transport_args, **kwargs)
