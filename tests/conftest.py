"""
Pytest configuration for outbound_guard tests.

Every test starts from a clean guard state: no guard env vars, no cached
config, no metrics registry and the stock resolver/audit sink.
"""

import pytest

GUARD_ENV_VARS = [
    "WEBHOOK_SECURITY_MODE",
    "API_SECURITY_MODE",
    "OUTBOUND_GUARD_DNS_TIMEOUT",
    "OUTBOUND_GUARD_VERDICT_CACHE_TTL",
    "OUTBOUND_GUARD_VERDICT_CACHE_SIZE",
    "OUTBOUND_GUARD_DEBUG",
]


@pytest.fixture(autouse=True)
def clean_guard_state(monkeypatch):
    """Remove guard env vars and reset module-level singletons."""
    from outbound_guard.audit import set_audit_sink
    from outbound_guard.config import clear_guard_config_cache
    from outbound_guard.metrics import reset_guard_metrics
    from outbound_guard.resolver import set_default_resolver

    for var in GUARD_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    clear_guard_config_cache()
    reset_guard_metrics()
    set_default_resolver(None)
    set_audit_sink(None)
    yield
    clear_guard_config_cache()
    reset_guard_metrics()
    set_default_resolver(None)
    set_audit_sink(None)


@pytest.fixture
def static_resolver():
    """A resolver with a few fixed answers, including rebinding targets."""
    from outbound_guard.resolver import StaticResolver

    return StaticResolver(
        {
            "api.example.com": "93.184.216.34",
            "hooks.example.com": "93.184.216.34",
            "evil.example.com": "169.254.169.254",
            "internal.example.com": "10.0.0.5",
            "loopback.example.com": "127.0.0.1",
            "v6internal.example.com": "fd00::5",
            "mapped.example.com": "::ffff:169.254.169.254",
            "localhost": "127.0.0.1",
            "127.0.0.1": "127.0.0.1",
            "10.0.0.1": "10.0.0.1",
            "192.168.1.1": "192.168.1.1",
            "93.184.216.34": "93.184.216.34",
        }
    )


@pytest.fixture
def memory_sink():
    """Collects audit events emitted during a test."""
    from outbound_guard.audit import MemoryAuditSink

    return MemoryAuditSink()
