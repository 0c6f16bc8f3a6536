"""
Name Resolution Collaborators
=============================

The request-time guard resolves a hostname to its primary IP address before
classifying it. Resolution is delegated to a small collaborator so the
platform resolver can be swapped for a pinned or mocked one.

- SystemResolver: non-blocking resolution through the running event loop's
  getaddrinfo(), so the event loop is never blocked on DNS
- StaticResolver: fixed hostname -> address mapping (tests, pinned setups)

The guard does not cache, retry or select resolvers; those belong to the
platform. Timeouts are enforced by the caller (see url_security).
"""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Mapping, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class ResolutionError(OSError):
    """Raised when a hostname cannot be resolved to an address."""

    def __init__(self, hostname: str, reason: str):
        self.hostname = hostname
        self.reason = reason
        super().__init__(f"Cannot resolve '{hostname}': {reason}")


@runtime_checkable
class Resolver(Protocol):
    """Resolves a hostname to a single (primary) IP address string."""

    async def resolve(self, hostname: str) -> str: ...


class SystemResolver:
    """
    Resolve through the operating system resolver without blocking.

    Uses asyncio.get_running_loop().getaddrinfo() and returns the first
    address, matching what a connecting HTTP client would try first.
    IP literals resolve to themselves.
    """

    def __init__(self, family: int = socket.AF_UNSPEC):
        self._family = family

    async def resolve(self, hostname: str) -> str:
        loop = asyncio.get_running_loop()
        try:
            addr_info = await loop.getaddrinfo(
                hostname, None, family=self._family, type=socket.SOCK_STREAM
            )
        except socket.gaierror as e:
            raise ResolutionError(hostname, str(e)) from e
        if not addr_info:
            raise ResolutionError(hostname, "no addresses returned")

        _family, _type, _proto, _canonname, sockaddr = addr_info[0]
        address = sockaddr[0]
        logger.debug(f"Resolved {hostname} -> {address}")
        return address


class StaticResolver:
    """
    Resolve from a fixed mapping.

    Hostnames missing from the mapping raise ResolutionError, mirroring
    NXDOMAIN.
    """

    def __init__(self, mapping: Mapping[str, str]):
        self._mapping = {host.lower(): addr for host, addr in mapping.items()}

    async def resolve(self, hostname: str) -> str:
        try:
            return self._mapping[hostname.lower()]
        except KeyError:
            raise ResolutionError(hostname, "no static mapping") from None


_default_resolver: Resolver | None = None


def get_default_resolver() -> Resolver:
    """Get the process-wide default resolver (SystemResolver)."""
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = SystemResolver()
    return _default_resolver


def set_default_resolver(resolver: Resolver | None) -> None:
    """Replace the default resolver. Passing None restores SystemResolver."""
    global _default_resolver
    _default_resolver = resolver


__all__ = [
    "Resolver",
    "ResolutionError",
    "SystemResolver",
    "StaticResolver",
    "get_default_resolver",
    "set_default_resolver",
]
