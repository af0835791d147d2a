"""Request utility functions for handling common request operations."""

import ipaddress
import logging

from starlette.requests import Request

logger = logging.getLogger(__name__)

# Proxies allowed to report the original client address via X-Real-IP
TRUSTED_PROXY_HOSTS = ("127.0.0.1", "::1", "localhost")


def _is_valid_ip(ip_str: str) -> bool:
    """Check if a string is a valid IP address."""
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request) -> str | None:
    """Get the client IP address from a request.

    Priority order:
    1. X-Real-IP, only when the direct peer is a local reverse proxy
    2. Direct client connection

    X-Forwarded-For is NOT trusted as it can be spoofed by any client.

    Args:
        request: The incoming request

    Returns:
        Client IP address or None if not available
    """
    if request.client and request.client.host in TRUSTED_PROXY_HOSTS:
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            ip = real_ip.strip()
            if _is_valid_ip(ip):
                return ip
            logger.warning(f"Invalid X-Real-IP: {real_ip}")

    if request.client:
        return request.client.host

    return None


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token of an ``Authorization: Bearer <token>`` header value.

    Returns None when the header is absent or uses another scheme.
    """
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:]
    return None
