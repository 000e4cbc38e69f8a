"""
IP allow-list utilities for the HTTP API

Resolves the real client address behind proxies and checks it against a
list of allowed IPs and CIDR ranges.
"""

import ipaddress
from typing import Iterable, Mapping, Optional


LOCALHOST_ALIASES = frozenset({'127.0.0.1', '::1', 'localhost'})

# Checked in order; the first header holding a valid IP wins
PROXY_HEADERS = ('CF-Connecting-IP', 'X-Real-IP', 'X-Forwarded-For')


def _is_valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def get_client_ip(headers: Mapping[str, str], remote: Optional[str], trust_proxy_headers: bool = True) -> str:
    """
    Determine the client's IP address.

    Proxy headers (Cloudflare, nginx, X-Forwarded-For) are consulted first
    when trusted; X-Forwarded-For may hold a chain, of which the first entry
    is the original client.

    Args:
        headers: Request headers
        remote: Peer address of the connection
        trust_proxy_headers: Whether to look at proxy headers at all

    Returns:
        Client IP, or 'unknown' if nothing valid was found

    Example:
        >>> get_client_ip({'X-Forwarded-For': '203.0.113.7, 10.0.0.1'}, '10.0.0.1')
        '203.0.113.7'
    """
    candidates = []
    if trust_proxy_headers:
        for header in PROXY_HEADERS:
            value = headers.get(header)
            if not value:
                continue
            if header == 'X-Forwarded-For':
                value = value.split(',')[0]
            candidates.append(value.strip())

    if remote:
        candidates.append(remote.strip())

    for candidate in candidates:
        if _is_valid_ip(candidate):
            return candidate

    return 'unknown'


def ip_in_cidr(ip: str, cidr: str) -> bool:
    """
    Check whether ip falls inside a CIDR range.

    Example:
        >>> ip_in_cidr('192.168.1.20', '192.168.1.0/24')
        True
    """
    try:
        return ipaddress.ip_address(ip) in ipaddress.ip_network(cidr, strict=False)
    except ValueError:
        return False


def is_ip_allowed(client_ip: str, allowed_ips: Iterable[str]) -> bool:
    """
    Check a client IP against the allow-list.

    An entry matches on equality, when both sides are localhost aliases,
    or when the entry is a CIDR range containing the IP.
    """
    for allowed in allowed_ips:
        allowed = allowed.strip()

        if client_ip == allowed:
            return True

        if allowed in LOCALHOST_ALIASES and client_ip in LOCALHOST_ALIASES:
            return True

        if '/' in allowed and ip_in_cidr(client_ip, allowed):
            return True

    return False
