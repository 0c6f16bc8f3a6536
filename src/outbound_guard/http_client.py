"""
Guarded HTTP Client
===================

An httpx.AsyncClient wrapper that runs the request-time SSRF guard before
every outbound request, redirects included.

Features:
- Eager, DNS-free check of the configured base URL at construction
  (api_mode), so obviously bad configuration fails at startup
- Request-time, DNS-resolving check (webhook_mode) from an httpx request
  event hook, which fires for every hop of a redirect chain
- Verdict memoization per (origin, mode) in a TTL-bounded VerdictCache;
  resolution failures are never cached
- Blocked verdicts abort the request with SSRFBlockedError; the client never
  retries under a different mode
- validate_base_url=False disables the guard (trusted, operator-configured
  endpoints only)

Usage:
    from outbound_guard.http_client import GuardedHTTPClient

    async with GuardedHTTPClient(base_url="https://hooks.example.com") as client:
        response = await client.post("/notify", json=payload)

See: https://www.python-httpx.org/advanced/event-hooks/
"""

from __future__ import annotations

import dataclasses
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from .audit import AuditSink
from .config import GuardConfig, get_guard_config
from .metrics import get_guard_metrics
from .models import BlockCategory, SecurityMode, ValidationResult
from .resolver import Resolver
from .url_security import SSRFBlockedError, validate_url_sync, validate_webhook_url
from .verdict_cache import VerdictCache

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def request_origin(url: httpx.URL) -> str:
    """Reduce a request URL to the scheme://host[:port] part the guard judges."""
    return f"{url.scheme}://{url.netloc.decode('ascii')}"


class GuardedHTTPClient:
    """
    httpx.AsyncClient with SSRF validation on every outbound request.

    Args:
        base_url: Optional base URL for relative requests
        mode: Request-time security mode (default: config.webhook_mode)
        config: Guard configuration (default: environment-derived)
        validate_base_url: Run the guard at all (default: True)
        resolver: Name resolver passed to the guard
        audit_sink: Audit sink passed to the guard
        verdict_cache: Cache for verdicts (default: sized from config)
        timeout: Request timeout; its connect component also bounds DNS
            resolution inside the guard
        **client_kwargs: Extra arguments for httpx.AsyncClient
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        mode: SecurityMode | str | None = None,
        config: GuardConfig | None = None,
        validate_base_url: bool = True,
        resolver: Resolver | None = None,
        audit_sink: AuditSink | None = None,
        verdict_cache: VerdictCache | None = None,
        timeout: float | httpx.Timeout | None = None,
        **client_kwargs: Any,
    ):
        self._config = config or get_guard_config()
        self._mode = (
            SecurityMode.parse(mode) if mode is not None else self._config.webhook_mode
        )
        self._validate = validate_base_url
        self._resolver = resolver
        self._audit_sink = audit_sink
        self._cache = verdict_cache or VerdictCache(
            max_size=self._config.verdict_cache_size,
            ttl=self._config.verdict_cache_ttl,
        )

        if base_url and self._validate:
            startup = validate_url_sync(base_url, self._config.api_mode)
            if not startup.valid:
                logger.warning(
                    f"SSRF: configured base URL rejected at startup: {startup.reason}"
                )
                raise SSRFBlockedError(base_url, startup.reason, startup.category)

        event_hooks = dict(client_kwargs.pop("event_hooks", {}) or {})
        if self._validate:
            event_hooks["request"] = [self._guard_request] + list(
                event_hooks.get("request", [])
            )

        client_args: dict[str, Any] = {
            "timeout": timeout if timeout is not None else DEFAULT_TIMEOUT,
            "event_hooks": event_hooks,
            **client_kwargs,
        }
        if base_url:
            client_args["base_url"] = base_url
        self._client = httpx.AsyncClient(**client_args)

    @property
    def mode(self) -> SecurityMode:
        return self._mode

    @property
    def verdict_cache(self) -> VerdictCache:
        return self._cache

    @property
    def client(self) -> httpx.AsyncClient:
        """The underlying httpx client."""
        return self._client

    def _guard_config(self) -> GuardConfig:
        connect_timeout = self._client.timeout.connect
        if connect_timeout is not None and connect_timeout < self._config.dns_timeout:
            return dataclasses.replace(self._config, dns_timeout=connect_timeout)
        return self._config

    async def check_url(self, url: str) -> ValidationResult:
        """
        Validate an absolute URL under this client's mode, using the cache.

        Returns:
            The (possibly cached) ValidationResult
        """
        m = get_guard_metrics()
        cached = self._cache.get(url, self._mode)
        if cached is not None:
            if m:
                m.verdict_cache_hits.add(1, {"mode": self._mode.value})
            return cached
        if m:
            m.verdict_cache_misses.add(1, {"mode": self._mode.value})

        result = await validate_webhook_url(
            url,
            self._mode,
            config=self._guard_config(),
            resolver=self._resolver,
            audit_sink=self._audit_sink,
        )
        # A resolver hiccup must not stick for a whole TTL
        if result.category is not BlockCategory.RESOLUTION_FAILED:
            self._cache.set(url, self._mode, result)
        return result

    async def _guard_request(self, request: httpx.Request) -> None:
        origin = request_origin(request.url)
        result = await self.check_url(origin)
        if not result.valid:
            raise SSRFBlockedError(str(request.url), result.reason, result.category)

    def invalidate(self, url: str | None = None) -> None:
        """Drop cached verdicts for one origin URL, or all of them."""
        if url is None:
            self._cache.clear()
        else:
            self._cache.invalidate(url)

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.request(method, url, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.get(url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.post(url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.put(url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.patch(url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.delete(url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GuardedHTTPClient:
        await self._client.__aenter__()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self._client.__aexit__(*exc_info)


@asynccontextmanager
async def create_guarded_client(
    base_url: str | None = None, **kwargs: Any
) -> AsyncIterator[GuardedHTTPClient]:
    """
    Create a GuardedHTTPClient that is closed on exit.

    Example:
        async with create_guarded_client("https://hooks.example.com") as client:
            await client.post("/notify", json={"ok": True})
    """
    client = GuardedHTTPClient(base_url, **kwargs)
    try:
        yield client
    finally:
        await client.aclose()


__all__ = [
    "GuardedHTTPClient",
    "create_guarded_client",
    "request_origin",
]
