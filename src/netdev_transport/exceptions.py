"""Custom exceptions for transport operations."""


class NetdevTransportError(Exception):
    """Common base exception for all netdev_transport errors."""
    pass


class TransportFailureError(NetdevTransportError):
    """Exception for EOF or failure while reading from the transport.

    The session cannot continue; the caller has to open a new one.
    """

    def __init__(self, message: str = "error reading from transport, cannot continue") -> None:
        super().__init__(message)


class TransportTimeoutError(NetdevTransportError):
    """Exception for transport operations that did not finish in time.

    Raised when a read does not complete within the idle timeout, or when
    a native SSH connection attempt exceeds the socket timeout.  The
    underlying session may still be alive but is presumed unresponsive.
    """

    def __init__(self, message: str = "transport operation timed out") -> None:
        super().__init__(message)


class UnknownTransportError(NetdevTransportError):
    """Exception for a transport name that is not implemented."""

    def __init__(self, message: str = "unknown transport provided") -> None:
        super().__init__(message)


class KeyVerificationFailedError(NetdevTransportError):
    """Exception for a rejected or unknown remote host key."""

    def __init__(self, message: str = "ssh key verification failed") -> None:
        super().__init__(message)


class TransportNotOpenError(NetdevTransportError):
    """Exception for reads or writes on a transport with no live session."""
    pass


class TransportAlreadyOpenError(NetdevTransportError):
    """Exception for opening a transport that already holds a live session."""
    pass
