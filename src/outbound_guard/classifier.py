"""
Address Classifier
==================

Pure, synchronous predicates that decide whether a hostname or IP literal
belongs to a disallowed destination category:

- Cloud metadata endpoints (AWS, Azure, GCP, Alibaba, Oracle)
- Localhost aliases and the IPv4 loopback block
- Private IPv4 ranges (RFC1918, link-local, loopback, 0.0.0.0/8)
- Private/reserved IPv6 ranges (loopback, unspecified, link-local,
  unique-local, IPv4-mapped)

All inputs are expected to be normalized with normalize_hostname() first
(lowercased, IPv6 brackets stripped). The IPv4 and localhost checks are
textual: they never parse or validate that a string is a well-formed address,
so malformed input simply does not match. The IPv6 check tests range
membership (fc00::/7, fe80::/10) when the string parses as an IPv6 address
and falls back to prefix matching otherwise. Protocol and URL parsing checks upstream compensate
for that permissive default.

The lookup tables below are built once at import and never mutated.
"""

import ipaddress
import re

# Cloud metadata endpoints (blocked in every security mode)
CLOUD_METADATA_HOSTS = frozenset(
    [
        # AWS / Azure
        "169.254.169.254",
        # AWS ECS task metadata
        "169.254.170.2",
        # GCP
        "metadata.google.internal",
        "metadata",
        # Alibaba Cloud
        "100.100.100.200",
        # Oracle Cloud
        "192.0.0.192",
    ]
)

LOCALHOST_ALIASES = frozenset(
    [
        "localhost",
        "127.0.0.1",
        "::1",
        "0.0.0.0",
        "localhost.localdomain",
    ]
)

IPV4_LOOPBACK_PREFIX = "127."
IPV6_LOOPBACK = "::1"

PRIVATE_IPV4_PATTERNS = (
    re.compile(r"^10\."),  # 10.0.0.0/8
    re.compile(r"^192\.168\."),  # 192.168.0.0/16
    re.compile(r"^172\.(1[6-9]|2[0-9]|3[0-1])\."),  # 172.16.0.0/12
    re.compile(r"^169\.254\."),  # 169.254.0.0/16 link-local
    re.compile(r"^127\."),  # 127.0.0.0/8 loopback
    re.compile(r"^0\."),  # 0.0.0.0/8
)

RESERVED_IPV6_EXACT = frozenset(
    [
        "::1",  # loopback
        "::",  # unspecified
    ]
)

RESERVED_IPV6_PREFIXES = (
    "fe80:",  # link-local
    "fc00:",  # unique-local (fc00::/7)
    "fd00:",  # unique-local (fd00::/8)
    "::ffff:",  # IPv4-mapped
)

IPV6_UNIQUE_LOCAL_NETWORK = ipaddress.ip_network("fc00::/7")
IPV6_LINK_LOCAL_NETWORK = ipaddress.ip_network("fe80::/10")


def normalize_hostname(hostname: str) -> str:
    """Lowercase a hostname and strip surrounding IPv6 brackets."""
    host = hostname.lower()
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host


def embedded_ipv4(addr: str) -> str | None:
    """
    Return the IPv4 address carried by an IPv4-mapped IPv6 literal.

    "::ffff:169.254.169.254" and its hex form "::ffff:a9fe:a9fe" both yield
    "169.254.169.254". Anything else yields None.
    """
    if not addr.startswith("::ffff:"):
        return None
    try:
        mapped = ipaddress.IPv6Address(addr).ipv4_mapped
    except ValueError:
        return None
    return str(mapped) if mapped is not None else None


def is_cloud_metadata(addr: str) -> bool:
    """Return True if addr is a known cloud metadata hostname or IP."""
    return addr in CLOUD_METADATA_HOSTS


def is_localhost(addr: str) -> bool:
    """
    Return True if addr refers to the local machine.

    Matches the fixed alias set, the IPv6 loopback literal, and anything in
    the 127.0.0.0/8 block by prefix.
    """
    return (
        addr in LOCALHOST_ALIASES
        or addr == IPV6_LOOPBACK
        or addr.startswith(IPV4_LOOPBACK_PREFIX)
    )


def is_private_ipv4(addr: str) -> bool:
    """Return True if addr textually matches a private IPv4 range."""
    return any(pattern.search(addr) for pattern in PRIVATE_IPV4_PATTERNS)


def is_reserved_ipv6(addr: str) -> bool:
    """
    Return True if addr is a private or reserved IPv6 literal.

    Well-formed addresses are checked against the unique-local (fc00::/7) and
    link-local (fe80::/10) networks; anything else falls back to the
    textual prefixes.
    """
    if addr in RESERVED_IPV6_EXACT:
        return True
    if addr.startswith(RESERVED_IPV6_PREFIXES):
        return True
    try:
        ip = ipaddress.IPv6Address(addr)
    except ValueError:
        return False
    return (
        ip.is_unspecified
        or ip.is_loopback
        or ip in IPV6_UNIQUE_LOCAL_NETWORK
        or ip in IPV6_LINK_LOCAL_NETWORK
    )


__all__ = [
    "CLOUD_METADATA_HOSTS",
    "LOCALHOST_ALIASES",
    "PRIVATE_IPV4_PATTERNS",
    "RESERVED_IPV6_EXACT",
    "RESERVED_IPV6_PREFIXES",
    "IPV6_UNIQUE_LOCAL_NETWORK",
    "IPV6_LINK_LOCAL_NETWORK",
    "normalize_hostname",
    "embedded_ipv4",
    "is_cloud_metadata",
    "is_localhost",
    "is_private_ipv4",
    "is_reserved_ipv6",
]
