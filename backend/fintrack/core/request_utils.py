"""Request utility functions for session metadata (client IP, device)."""

import ipaddress
import logging

from fastapi import Request

from fintrack.core.config import settings

logger = logging.getLogger(__name__)

MAX_DEVICE_INFO_LENGTH = 255
UNKNOWN_DEVICE = "Unknown"


def _is_valid_ip(ip_str: str) -> bool:
    """Check if a string is a valid IP address."""
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request, trusted_proxies: list[str] | None = None) -> str | None:
    """Get the client IP address from a request.

    X-Forwarded-For is only honoured when the direct peer is a trusted proxy.
    Proxies append to the header, so hops are read right to left and the
    first address that is not itself a trusted proxy is the client; anything
    further left was supplied by the client and is ignored.

    Returns:
        Client IP address or None if not available
    """
    if trusted_proxies is None:
        trusted_proxies = settings.trusted_proxies_list

    peer = request.client.host if request.client else None
    if not peer or peer not in trusted_proxies:
        return peer

    forwarded = request.headers.get("X-Forwarded-For")
    if not forwarded:
        return peer

    for hop in reversed(forwarded.split(",")):
        ip = hop.strip()
        if not _is_valid_ip(ip):
            logger.warning(f"Invalid X-Forwarded-For: {forwarded}")
            return peer
        if ip not in trusted_proxies:
            return ip

    # Every hop is a trusted proxy
    return peer


def get_device_info(request: Request) -> str:
    """User-Agent of the request, truncated to fit the session column."""
    user_agent = request.headers.get("User-Agent") or UNKNOWN_DEVICE
    return user_agent[:MAX_DEVICE_INFO_LENGTH]
