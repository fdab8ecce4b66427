"""Endpoint helpers."""

from __future__ import annotations

import ipaddress

DEFAULT_PORT = 443


def _is_bare_ipv6(value: str) -> bool:
    try:
        return ipaddress.ip_address(value).version == 6
    except ValueError:
        return False


def has_port(endpoint: str) -> bool:
    """Whether ``endpoint`` already names a port.

    ``[::1]:8443`` and ``host:8443`` do, ``host``, ``[::1]`` and a bare
    ``::1`` do not.
    """
    if endpoint.startswith("["):
        return "]:" in endpoint
    if _is_bare_ipv6(endpoint):
        return False
    return ":" in endpoint


def normalize_endpoint(endpoint: str, default_port: int = DEFAULT_PORT) -> str:
    """Append ``:<default_port>`` when the endpoint has no port."""
    if has_port(endpoint):
        return endpoint
    if _is_bare_ipv6(endpoint):
        return f"[{endpoint}]:{default_port}"
    return f"{endpoint}:{default_port}"
