"""
Guard Configuration
===================

Immutable configuration threaded through validation calls instead of a
process-wide mutable "current mode".

Two independent trust modes are configured:
- api_mode: governs the synchronous, DNS-free check used while loading
  configuration (e.g. a configured API base URL)
- webhook_mode: governs the asynchronous, DNS-resolving check used right
  before an outbound request

They may differ, allowing e.g. a lenient startup check with a strict
request-time guard.

Configuration (Environment Variables):
- WEBHOOK_SECURITY_MODE: strict | moderate | permissive (default: strict)
- API_SECURITY_MODE: strict | moderate | permissive (default: permissive)
- OUTBOUND_GUARD_DNS_TIMEOUT: DNS resolution timeout in seconds (default: 5.0)
- OUTBOUND_GUARD_VERDICT_CACHE_TTL: Verdict cache TTL in seconds (default: 300)
- OUTBOUND_GUARD_VERDICT_CACHE_SIZE: Max cached verdicts (default: 1000)

Usage:
    from outbound_guard.config import get_guard_config

    config = get_guard_config()
    result = await validate_webhook_url(url, config=config)
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import yaml

from .models import SecurityMode

logger = logging.getLogger(__name__)

DEFAULT_WEBHOOK_MODE = SecurityMode.STRICT
DEFAULT_API_MODE = SecurityMode.PERMISSIVE
DEFAULT_DNS_TIMEOUT = 5.0
DEFAULT_VERDICT_CACHE_TTL = 300.0
DEFAULT_VERDICT_CACHE_SIZE = 1000


class GuardConfigError(ValueError):
    """Raised when guard configuration contains an unusable value."""


def _parse_mode(value: Any, source: str) -> SecurityMode:
    try:
        return SecurityMode.parse(value)
    except ValueError as e:
        raise GuardConfigError(f"{source}: {e}") from e


def _positive_float(raw: Any, name: str, default: float) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning(f"Invalid {name} value '{raw}', using default {default}")
        return default
    if not math.isfinite(value) or value <= 0:
        logger.warning(f"Non-positive {name} value '{raw}', using default {default}")
        return default
    return value


def _positive_int(raw: Any, name: str, default: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning(f"Invalid {name} value '{raw}', using default {default}")
        return default
    if value <= 0:
        logger.warning(f"Non-positive {name} value '{raw}', using default {default}")
        return default
    return value


@dataclass(frozen=True)
class GuardConfig:
    """Configuration for the outbound request guard."""

    webhook_mode: SecurityMode = DEFAULT_WEBHOOK_MODE
    api_mode: SecurityMode = DEFAULT_API_MODE
    dns_timeout: float = DEFAULT_DNS_TIMEOUT
    verdict_cache_ttl: float = DEFAULT_VERDICT_CACHE_TTL
    verdict_cache_size: int = DEFAULT_VERDICT_CACHE_SIZE

    @classmethod
    def from_env(cls) -> GuardConfig:
        """Load configuration from environment variables."""
        webhook_mode = _parse_mode(
            os.getenv("WEBHOOK_SECURITY_MODE", DEFAULT_WEBHOOK_MODE.value),
            "WEBHOOK_SECURITY_MODE",
        )
        api_mode = _parse_mode(
            os.getenv("API_SECURITY_MODE", DEFAULT_API_MODE.value),
            "API_SECURITY_MODE",
        )
        dns_timeout = _positive_float(
            os.getenv("OUTBOUND_GUARD_DNS_TIMEOUT", str(DEFAULT_DNS_TIMEOUT)),
            "OUTBOUND_GUARD_DNS_TIMEOUT",
            DEFAULT_DNS_TIMEOUT,
        )
        cache_ttl = _positive_float(
            os.getenv(
                "OUTBOUND_GUARD_VERDICT_CACHE_TTL", str(DEFAULT_VERDICT_CACHE_TTL)
            ),
            "OUTBOUND_GUARD_VERDICT_CACHE_TTL",
            DEFAULT_VERDICT_CACHE_TTL,
        )
        cache_size = _positive_int(
            os.getenv(
                "OUTBOUND_GUARD_VERDICT_CACHE_SIZE", str(DEFAULT_VERDICT_CACHE_SIZE)
            ),
            "OUTBOUND_GUARD_VERDICT_CACHE_SIZE",
            DEFAULT_VERDICT_CACHE_SIZE,
        )

        config = cls(
            webhook_mode=webhook_mode,
            api_mode=api_mode,
            dns_timeout=dns_timeout,
            verdict_cache_ttl=cache_ttl,
            verdict_cache_size=cache_size,
        )
        logger.debug(
            f"Guard config loaded: webhook_mode={config.webhook_mode.value}, "
            f"api_mode={config.api_mode.value}, dns_timeout={config.dns_timeout}s, "
            f"verdict_cache_ttl={config.verdict_cache_ttl}s, "
            f"verdict_cache_size={config.verdict_cache_size}"
        )
        return config

    @classmethod
    def from_yaml(cls, yaml_content: str) -> GuardConfig:
        """Load configuration from a YAML document."""
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise GuardConfigError(f"Invalid guard config YAML: {e}") from e
        if data is not None and not isinstance(data, dict):
            raise GuardConfigError("Guard config YAML must be a mapping")
        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GuardConfig:
        """
        Load configuration from a dictionary.

        Missing keys take their defaults. An optional top-level
        "outbound_guard" section is unwrapped first.
        """
        section = data.get("outbound_guard", data)
        if not isinstance(section, dict):
            raise GuardConfigError("'outbound_guard' section must be a mapping")

        return cls(
            webhook_mode=_parse_mode(
                section.get("webhook_mode", DEFAULT_WEBHOOK_MODE.value), "webhook_mode"
            ),
            api_mode=_parse_mode(
                section.get("api_mode", DEFAULT_API_MODE.value), "api_mode"
            ),
            dns_timeout=_positive_float(
                section.get("dns_timeout", DEFAULT_DNS_TIMEOUT),
                "dns_timeout",
                DEFAULT_DNS_TIMEOUT,
            ),
            verdict_cache_ttl=_positive_float(
                section.get("verdict_cache_ttl", DEFAULT_VERDICT_CACHE_TTL),
                "verdict_cache_ttl",
                DEFAULT_VERDICT_CACHE_TTL,
            ),
            verdict_cache_size=_positive_int(
                section.get("verdict_cache_size", DEFAULT_VERDICT_CACHE_SIZE),
                "verdict_cache_size",
                DEFAULT_VERDICT_CACHE_SIZE,
            ),
        )


@lru_cache(maxsize=1)
def get_guard_config() -> GuardConfig:
    """Return the environment-derived configuration (cached)."""
    return GuardConfig.from_env()


def clear_guard_config_cache() -> None:
    """Clear the cached configuration. Useful for testing."""
    get_guard_config.cache_clear()


__all__ = [
    "GuardConfig",
    "GuardConfigError",
    "get_guard_config",
    "clear_guard_config_cache",
    "DEFAULT_DNS_TIMEOUT",
    "DEFAULT_VERDICT_CACHE_TTL",
    "DEFAULT_VERDICT_CACHE_SIZE",
]
