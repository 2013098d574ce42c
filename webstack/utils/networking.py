"""
Network helpers.
"""

import ipaddress
import socket
from typing import Optional

from aiohttp import web

from .logging import logger

# Checked in order; the first one present wins.
PROXY_HEADERS = ('X-Real-IP', 'X-Forwarded-For', 'CF-Connecting-IP')


def get_local_ip() -> Optional[str]:
    """
    Automatically detects the machine's local IP address.

    Returns:
        Optional[str]: The local IP address, or None if detection fails.
    """
    try:
        # Connecting a UDP socket sends nothing, it only picks a route
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("8.8.8.8", 80))
            local_ip = s.getsockname()[0]
            logger.info(f"Auto-detected local IP: {local_ip}")
            return local_ip
    except OSError as e:
        logger.warning(f"Could not auto-detect local IP: {e}")
        return None


def _valid_ip(value: str) -> Optional[str]:
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def real_remote_addr(request: web.Request, trust_proxy_headers: bool = False) -> str:
    """
    Get the address of the client that made the request, taking reverse
    proxies into account.

    Args:
        request: The incoming aiohttp request
        trust_proxy_headers: Honour X-Real-IP, X-Forwarded-For and
            CF-Connecting-IP. Only enable behind a proxy that sets them.

    Returns:
        str: The client IP address, or an empty string if unknown
    """
    if trust_proxy_headers:
        for header in PROXY_HEADERS:
            value = request.headers.get(header)
            if not value:
                continue
            # X-Forwarded-For is "client, proxy1, proxy2"
            address = _valid_ip(value.split(',')[0])
            if address:
                return address

    return request.remote or ''
