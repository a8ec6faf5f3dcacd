"""
URL safety checks run before any page is fetched.

Blocks private, loopback and link-local hosts plus dangerous schemes so the
fetcher cannot be pointed at internal services (SSRF). Matching is done on
the hostname text only; no DNS lookup happens here, so a public-looking
name that resolves to a private address is not caught.
"""

import ipaddress
import re
from urllib.parse import SplitResult, urlsplit

from errors import ValidationError

PRIVATE_HOST_PATTERNS = [
    re.compile(r"^127\."),
    re.compile(r"^10\."),
    re.compile(r"^192\.168\."),
    re.compile(r"^172\.(1[6-9]|2\d|3[01])\."),
    re.compile(r"^0\."),
    re.compile(r"^169\.254\."),
    re.compile(r"^localhost$", re.IGNORECASE),
]

PRIVATE_IPV6_NETWORKS = [
    ipaddress.ip_network("fc00::/7"),   # unique local
    ipaddress.ip_network("fe80::/10"),  # link local
    ipaddress.ip_network("::1/128"),
]

BLOCKED_SCHEMES = {"file", "ftp", "data", "javascript"}
ALLOWED_SCHEMES = {"http", "https"}


def is_private_host(hostname: str) -> bool:
    """True if the hostname looks like a private/loopback/link-local address."""
    host = hostname.rstrip(".").lower()
    if any(p.search(host) for p in PRIVATE_HOST_PATTERNS):
        return True

    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return False

    if isinstance(ip, ipaddress.IPv6Address):
        if ip.ipv4_mapped is not None:
            return is_private_host(str(ip.ipv4_mapped))
        return any(ip in net for net in PRIVATE_IPV6_NETWORKS)
    return False


def validate_url(url_string: str) -> SplitResult:
    """Parse and vet a URL. Returns the parsed URL or raises ValidationError."""
    if not isinstance(url_string, str):
        raise ValidationError("Invalid URL format")

    try:
        url = urlsplit(url_string.strip())
        hostname = url.hostname
        url.port  # raises on a malformed port
    except ValueError as e:
        raise ValidationError("Invalid URL format") from e

    scheme = url.scheme.lower()
    if not scheme:
        raise ValidationError("Invalid URL format")

    if scheme in BLOCKED_SCHEMES:
        raise ValidationError(f'Protocol "{scheme}:" is not allowed')

    if scheme not in ALLOWED_SCHEMES:
        raise ValidationError("Only HTTP and HTTPS URLs are supported")

    if not hostname:
        raise ValidationError("Invalid URL format")

    if is_private_host(hostname):
        raise ValidationError("URL not allowed (private network)")

    return url
