"""
Tests for the Guarded HTTP Client
=================================

Tests that:
- Startup (sync) check rejects obviously bad base URLs
- Request-time (async) check blocks before anything is sent
- Redirect hops are validated too
- Verdicts are cached per origin, except resolution failures
- validate_base_url=False disables the guard
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from outbound_guard.config import GuardConfig
from outbound_guard.http_client import (
    GuardedHTTPClient,
    create_guarded_client,
    request_origin,
)
from outbound_guard.models import BlockCategory, SecurityMode
from outbound_guard.resolver import ResolutionError
from outbound_guard.url_security import SSRFBlockedError


class RecordingHandler:
    """MockTransport handler that records every request it receives."""

    def __init__(self, redirects=None):
        self.requests = []
        self._redirects = redirects or {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        location = self._redirects.get(str(request.url))
        if location:
            return httpx.Response(302, headers={"Location": location})
        return httpx.Response(200, json={"ok": True})


@pytest.fixture
def handler():
    return RecordingHandler()


def _client(handler, static_resolver, memory_sink, **kwargs):
    return GuardedHTTPClient(
        transport=httpx.MockTransport(handler),
        resolver=static_resolver,
        audit_sink=memory_sink,
        **kwargs,
    )


class TestStartupCheck:
    def test_metadata_base_url_rejected_at_construction(self):
        with pytest.raises(SSRFBlockedError) as exc_info:
            GuardedHTTPClient("http://169.254.169.254/latest")
        assert exc_info.value.category is BlockCategory.CLOUD_METADATA

    def test_bad_protocol_rejected_at_construction(self):
        with pytest.raises(SSRFBlockedError):
            GuardedHTTPClient("file:///etc/passwd")

    def test_startup_check_uses_api_mode(self):
        strict = GuardConfig(api_mode=SecurityMode.STRICT)
        with pytest.raises(SSRFBlockedError):
            GuardedHTTPClient("http://localhost:5678", config=strict)

        # Default api_mode is permissive
        GuardedHTTPClient("http://localhost:5678")

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValueError):
            GuardedHTTPClient("https://api.example.com", mode="whatever")


class TestRequestTimeGuard:
    @pytest.mark.asyncio
    async def test_public_request_sent(self, handler, static_resolver, memory_sink):
        async with _client(
            handler, static_resolver, memory_sink, base_url="https://api.example.com"
        ) as client:
            response = await client.get("/v1/status")

        assert response.status_code == 200
        assert len(handler.requests) == 1
        assert memory_sink.events[0].outcome.value == "allowed"

    @pytest.mark.asyncio
    async def test_rebinding_blocked_before_send(
        self, handler, static_resolver, memory_sink
    ):
        async with _client(
            handler, static_resolver, memory_sink, base_url="https://evil.example.com"
        ) as client:
            with pytest.raises(SSRFBlockedError) as exc_info:
                await client.post("/hook", json={"x": 1})

        assert "metadata" in exc_info.value.reason.lower()
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_private_base_url_passes_startup_but_blocked_at_request(
        self, handler, static_resolver, memory_sink
    ):
        client = _client(
            handler, static_resolver, memory_sink, base_url="http://10.0.0.1"
        )
        with pytest.raises(SSRFBlockedError) as exc_info:
            await client.get("/")
        await client.aclose()

        assert exc_info.value.category is BlockCategory.PRIVATE_ADDRESS
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_absolute_url_validated(self, handler, static_resolver, memory_sink):
        async with _client(handler, static_resolver, memory_sink) as client:
            with pytest.raises(SSRFBlockedError):
                await client.get("http://internal.example.com/admin")

    @pytest.mark.asyncio
    async def test_permissive_client_allows_private(
        self, handler, static_resolver, memory_sink
    ):
        async with _client(
            handler, static_resolver, memory_sink, mode="permissive"
        ) as client:
            response = await client.get("http://internal.example.com/admin")

        assert response.status_code == 200
        assert client.mode is SecurityMode.PERMISSIVE

    @pytest.mark.asyncio
    async def test_redirect_to_private_host_blocked(self, static_resolver, memory_sink):
        handler = RecordingHandler(
            redirects={"https://hooks.example.com/start": "http://internal.example.com/"}
        )
        async with _client(handler, static_resolver, memory_sink) as client:
            with pytest.raises(SSRFBlockedError):
                await client.get(
                    "https://hooks.example.com/start", follow_redirects=True
                )

        assert [str(r.url) for r in handler.requests] == [
            "https://hooks.example.com/start"
        ]

    @pytest.mark.asyncio
    async def test_guard_disabled(self, handler, memory_sink):
        resolver = AsyncMock()
        async with GuardedHTTPClient(
            "http://169.254.169.254",
            validate_base_url=False,
            transport=httpx.MockTransport(handler),
            resolver=resolver,
            audit_sink=memory_sink,
        ) as client:
            response = await client.get("/latest/meta-data/")

        assert response.status_code == 200
        resolver.resolve.assert_not_awaited()
        assert memory_sink.events == []

    @pytest.mark.asyncio
    async def test_user_request_hooks_still_run(
        self, handler, static_resolver, memory_sink
    ):
        seen = []

        async def user_hook(request):
            seen.append(str(request.url))

        async with _client(
            handler,
            static_resolver,
            memory_sink,
            event_hooks={"request": [user_hook]},
        ) as client:
            await client.get("https://api.example.com/x")
            with pytest.raises(SSRFBlockedError):
                await client.get("https://internal.example.com/x")

        # The guard runs first, so blocked requests never reach user hooks
        assert seen == ["https://api.example.com/x"]


class TestVerdictCaching:
    @pytest.mark.asyncio
    async def test_origin_validated_once(self, handler, memory_sink):
        resolver = AsyncMock()
        resolver.resolve.return_value = "93.184.216.34"
        async with _client(
            handler, resolver, memory_sink, base_url="https://api.example.com"
        ) as client:
            await client.get("/a")
            await client.get("/b?page=2")
            await client.put("/c", json={})

        assert resolver.resolve.await_count == 1
        assert len(handler.requests) == 3
        assert len(client.verdict_cache) == 1

    @pytest.mark.asyncio
    async def test_resolution_failure_not_cached(self, handler, memory_sink):
        resolver = AsyncMock()
        resolver.resolve.side_effect = [
            ResolutionError("api.example.com", "temporary failure"),
            "93.184.216.34",
        ]
        async with _client(
            handler, resolver, memory_sink, base_url="https://api.example.com"
        ) as client:
            with pytest.raises(SSRFBlockedError) as exc_info:
                await client.get("/")
            response = await client.get("/")

        assert exc_info.value.category is BlockCategory.RESOLUTION_FAILED
        assert response.status_code == 200
        assert resolver.resolve.await_count == 2

    @pytest.mark.asyncio
    async def test_blocked_verdict_cached(self, handler, memory_sink):
        resolver = AsyncMock()
        resolver.resolve.return_value = "10.0.0.5"
        async with _client(handler, resolver, memory_sink) as client:
            for _ in range(2):
                with pytest.raises(SSRFBlockedError):
                    await client.get("https://internal.example.com/")

        assert resolver.resolve.await_count == 1

    @pytest.mark.asyncio
    async def test_invalidate(self, handler, memory_sink):
        resolver = AsyncMock()
        resolver.resolve.return_value = "93.184.216.34"
        async with _client(handler, resolver, memory_sink) as client:
            await client.get("https://api.example.com/")
            client.invalidate("https://api.example.com")
            await client.get("https://api.example.com/")
            client.invalidate()
            assert len(client.verdict_cache) == 0

        assert resolver.resolve.await_count == 2

    @pytest.mark.asyncio
    async def test_check_url_direct(self, handler, static_resolver, memory_sink):
        async with _client(handler, static_resolver, memory_sink) as client:
            result = await client.check_url("https://evil.example.com")
        assert not result.valid


class TestTimeouts:
    def test_dns_timeout_bounded_by_connect_timeout(self):
        client = GuardedHTTPClient(timeout=httpx.Timeout(10.0, connect=0.5))
        assert client._guard_config().dns_timeout == 0.5

    def test_dns_timeout_kept_when_shorter(self):
        client = GuardedHTTPClient(config=GuardConfig(dns_timeout=1.0), timeout=30.0)
        assert client._guard_config().dns_timeout == 1.0


class TestHelpers:
    def test_request_origin(self):
        assert (
            request_origin(httpx.URL("https://api.example.com:8443/x?y=1"))
            == "https://api.example.com:8443"
        )
        assert request_origin(httpx.URL("http://[::1]:8080/")) == "http://[::1]:8080"

    @pytest.mark.asyncio
    async def test_create_guarded_client_closes(self, static_resolver, memory_sink):
        async with create_guarded_client(
            "https://api.example.com",
            resolver=static_resolver,
            audit_sink=memory_sink,
        ) as client:
            assert isinstance(client, GuardedHTTPClient)
        assert client.client.is_closed
