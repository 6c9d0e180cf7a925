"""URL validation for candidate image fetches.

Shopping thumbnails come from a third-party search response, so every URL is
checked before the engine downloads it. Blocks private IPs, local hostnames,
and non-HTTP schemes.
"""

from __future__ import annotations

import ipaddress
import socket
from dataclasses import dataclass
from urllib.parse import urlparse

from matchengine.config.settings import ImageURLPolicyConfig

PRIVATE_NETWORKS = [
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]


@dataclass(frozen=True)
class URLValidationResult:
    allowed: bool
    reason: str


def _private_network_for(addr: ipaddress.IPv4Address | ipaddress.IPv6Address) -> str | None:
    for network in PRIVATE_NETWORKS:
        if addr in network:
            return str(network)
    return None


def validate_image_url(
    url: str, policy: ImageURLPolicyConfig, resolve_dns: bool = True
) -> URLValidationResult:
    """Validate a thumbnail URL against the fetch policy.

    Data URLs are always allowed: they carry the image inline and never
    leave the process.
    """
    if url.startswith("data:image/"):
        return URLValidationResult(allowed=True, reason="Inline image")

    parsed = urlparse(url)
    if parsed.scheme not in policy.allowed_schemes:
        return URLValidationResult(allowed=False, reason=f"Scheme '{parsed.scheme}' not allowed")

    hostname = parsed.hostname or ""
    if not hostname:
        return URLValidationResult(allowed=False, reason="No hostname in URL")

    if policy.block_local_hostnames and (hostname == "localhost" or hostname.endswith(".local")):
        return URLValidationResult(allowed=False, reason=f"Hostname '{hostname}' is blocked")

    if not policy.block_private_ips:
        return URLValidationResult(allowed=True, reason="OK")

    try:
        addr = ipaddress.ip_address(hostname)
    except ValueError:
        addr = None

    if addr is not None:
        match = _private_network_for(addr)
        if match:
            return URLValidationResult(allowed=False, reason=f"IP {addr} is in private range {match}")
        return URLValidationResult(allowed=True, reason="OK")

    if not resolve_dns:
        return URLValidationResult(allowed=True, reason="OK")

    try:
        infos = socket.getaddrinfo(hostname, None)
    except socket.gaierror:
        return URLValidationResult(allowed=False, reason=f"Cannot resolve hostname '{hostname}'")

    for info in infos:
        resolved = ipaddress.ip_address(info[4][0])
        match = _private_network_for(resolved)
        if match:
            return URLValidationResult(
                allowed=False, reason=f"IP {resolved} is in private range {match}"
            )

    return URLValidationResult(allowed=True, reason="OK")
