"""Node identity detection."""

from __future__ import annotations

import socket

FALLBACK_IP = "127.0.0.1"

# Any routable address; nothing is sent to it
_PROBE_ADDRESS = ("8.8.8.8", 80)


def hostname() -> str:
    """Get the node's hostname."""
    return socket.gethostname()


def local_ip() -> str:
    """Get the address of the interface holding the default route.

    Connecting a UDP socket only selects a route, no packets are sent.
    Falls back to the loopback address on hosts without a default route.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect(_PROBE_ADDRESS)
        return sock.getsockname()[0]
    except OSError:
        return FALLBACK_IP
    finally:
        sock.close()
