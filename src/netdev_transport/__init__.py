"""
Netdev Transport - timeout-bounded byte transports for network device sessions

This package moves raw bytes to and from interactive sessions on routers,
switches and similar CLI/NETCONF-speaking equipment. It includes:

- **System transport** spawning the ``ssh`` binary on a pseudo-terminal
- **Standard transport** speaking SSH natively through paramiko
- **Timeout guard** bounding every blocking read by a live-tunable duration
- **NETCONF mode** opening the ``netconf`` subsystem over either transport

Prompt detection, command drivers and output parsing live above this layer.
"""

import logging
import os

logging.getLogger("netdev_transport").addHandler(logging.NullHandler())

__version__ = "0.1.0"

# Maximum bytes returned by a single read().
READ_SIZE = 65_535

# Transport names accepted by new_transport().
SYSTEM_TRANSPORT_NAME = "system"
STANDARD_TRANSPORT_NAME = "standard"

# SSH port
SSH_PORT = 22

# Timeout settings (seconds)
TIMEOUT_SOCKET = 5.0
TIMEOUT_TRANSPORT = 10.0

# Pseudo-terminal size requested for interactive sessions
PTY_HEIGHT = 80
PTY_WIDTH = 256

# Program spawned by the system transport
DEFAULT_EXEC_CMD = "ssh"

# Granularity at which a blocked read worker checks for cancellation
READ_POLL_INTERVAL_S = 0.01

# Default device for the command-line probe.
# Credentials are read from environment variables, no secrets in the codebase.
#   NETDEV_HOST / NETDEV_PORT / NETDEV_USER / NETDEV_PASS
#   NETDEV_TIMEOUT_SOCKET / NETDEV_TIMEOUT_TRANSPORT
DEFAULT_DEVICE = {
    "host": os.environ.get("NETDEV_HOST", "192.168.1.1"),
    "port": os.environ.get("NETDEV_PORT", str(SSH_PORT)),
    "username": os.environ.get("NETDEV_USER", ""),
    "password": os.environ.get("NETDEV_PASS", ""),
    "timeout_socket": os.environ.get("NETDEV_TIMEOUT_SOCKET", str(TIMEOUT_SOCKET)),
    "timeout_transport": os.environ.get("NETDEV_TIMEOUT_TRANSPORT", str(TIMEOUT_TRANSPORT)),
}
