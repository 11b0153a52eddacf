"""Host address discovery for the get-ip query."""

from __future__ import annotations

import logging
import socket

logger = logging.getLogger(__name__)

FALLBACK_ADDRESS = "127.0.0.1"

# Any routable address works; a UDP connect sends no packets.
_ROUTE_TARGET = ("8.8.8.8", 80)


def primaryAddress_get() -> str:
    """
    Return the host's primary LAN-reachable IPv4 address.

    The address is the source address of the default route. Hosts without a
    default route fall back to the loopback address.

    Returns:
        Dotted-quad IPv4 address.
    """
    route_socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        route_socket.connect(_ROUTE_TARGET)
        address: str = route_socket.getsockname()[0]
    except OSError as e:
        logger.warning(f"No default route, reporting {FALLBACK_ADDRESS}: {e}")
        return FALLBACK_ADDRESS
    finally:
        route_socket.close()
    return address
