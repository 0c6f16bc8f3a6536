"""
URL Security Utilities for SSRF Prevention
===========================================

This module decides whether an outbound HTTP(S) request to a caller-supplied
URL (webhook, configured API base URL) is safe to issue.

Two entry points with different guarantees:

1. validate_url_sync(url, mode) - DNS-free, literal-text check.
   Usable while loading configuration. It only inspects the hostname as
   written, so a public-looking hostname whose DNS record points at a
   private or metadata address PASSES here. Treat it as a startup sanity
   check, never as the request-time guard.

2. validate_webhook_url(url, mode) - async, DNS-resolving check.
   The authoritative request-time gate. The hostname is resolved and every
   decision after the cloud-metadata hostname check is made on the resolved
   address, which defeats DNS rebinding. Resolution errors and timeouts
   fail closed.

Security modes (both paths):

| Mode       | Cloud metadata | Localhost | Private IP (v4/v6) |
|------------|----------------|-----------|--------------------|
| strict     | blocked        | blocked   | blocked            |
| moderate   | blocked        | allowed   | blocked            |
| permissive | blocked        | allowed   | allowed            |

Cloud metadata is blocked in every mode, including IPv4-mapped IPv6 spellings
of metadata addresses.

Every expected failure is returned as a ValidationResult; nothing here raises
for bad input. validate_outbound_url() / validate_outbound_url_async() are
the raising wrappers for callers that prefer exceptions.

Usage:
    from outbound_guard.url_security import validate_url_sync, validate_webhook_url

    # At config load
    result = validate_url_sync("https://api.example.com", "moderate")

    # Right before the outbound call
    result = await validate_webhook_url("https://hooks.example.com/x")
    if not result.valid:
        raise SSRFBlockedError(url, result.reason, result.category)
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import re
import socket
import time
from typing import Any
from urllib.parse import unquote, urlparse

from opentelemetry import trace

from .audit import (
    AuditOutcome,
    AuditSink,
    SSRFAuditEvent,
    emit_audit_event,
    get_audit_sink,
)
from .classifier import (
    embedded_ipv4,
    is_cloud_metadata,
    is_localhost,
    is_private_ipv4,
    is_reserved_ipv6,
    normalize_hostname,
)
from .config import GuardConfig, get_guard_config
from .metrics import get_guard_metrics
from .models import BlockCategory, SecurityMode, ValidationResult
from .resolver import Resolver, get_default_resolver

logger = logging.getLogger(__name__)

TRACER_NAME = "outbound_guard"

# Allowed URL schemes
ALLOWED_SCHEMES = frozenset(["http", "https"])

REASON_INVALID_URL = "Invalid URL format"
REASON_INVALID_PROTOCOL = "Invalid protocol. Only HTTP/HTTPS allowed."
REASON_CLOUD_METADATA = "Cloud metadata endpoint blocked"
REASON_RESOLVES_TO_METADATA = "Hostname resolves to cloud metadata endpoint"
REASON_LOCALHOST_STRICT = "Localhost access is blocked in strict mode"
REASON_PRIVATE_IP_STRICT = "Private IP addresses not allowed"
REASON_PRIVATE_IP_MODERATE = (
    "Private IP addresses not allowed (use permissive mode if needed)"
)
REASON_IPV6_PRIVATE = "IPv6 private address not allowed"
REASON_DNS_FAILED = "DNS resolution failed"

# Candidate for inet_aton() shorthand forms such as "0x7f.1" or "2130706433"
_IPV4_SHORTHAND = re.compile(r"[0-9a-fx.]+")


class SSRFBlockedError(Exception):
    """Raised by the raising wrappers when a URL is blocked due to SSRF risk."""

    def __init__(
        self,
        url: str,
        reason: str,
        category: BlockCategory | None = None,
    ):
        self.url = url
        self.reason = reason
        self.category = category
        super().__init__(f"SSRF blocked: {reason} (URL: {url})")


# =============================================================================
# URL parsing and host canonicalization
# =============================================================================


def _canonical_host(hostname: str) -> str:
    """
    Bring a hostname or address into the form the classifier expects.

    Lowercases, strips IPv6 brackets and a trailing root dot, decodes
    percent-escapes, compresses IPv6 literals ("0:0:0:0:0:0:0:1" -> "::1")
    and expands IPv4 shorthand ("0x7f.1" -> "127.0.0.1") the way URL
    parsers in HTTP clients do.
    """
    host = normalize_hostname(unquote(hostname)).rstrip(".")

    if ":" in host:
        try:
            return str(ipaddress.IPv6Address(host))
        except ValueError:
            return host

    if _IPV4_SHORTHAND.fullmatch(host):
        try:
            return socket.inet_ntoa(socket.inet_aton(host))
        except OSError:
            return host

    return host


def _has_unsafe_characters(url: str) -> bool:
    # Backslashes and embedded whitespace/control characters are parsed
    # differently by different URL parsers; reject instead of guessing.
    return any(ch == "\\" or ch.isspace() or ord(ch) < 0x20 for ch in url)


def _parse_target(url: Any) -> tuple[str | None, ValidationResult | None]:
    """
    Parse a URL down to its canonical hostname.

    Returns (hostname, None) on success or (None, blocked_result) on a
    malformed URL or disallowed scheme.
    """
    invalid = ValidationResult.blocked(REASON_INVALID_URL, BlockCategory.MALFORMED_URL)

    if not isinstance(url, str):
        return None, invalid
    candidate = url.strip()
    if not candidate or _has_unsafe_characters(candidate):
        return None, invalid

    try:
        parsed = urlparse(candidate)
        scheme = (parsed.scheme or "").lower()
        hostname = parsed.hostname
        # Accessing .port validates it (non-numeric or out of range -> ValueError)
        parsed.port
    except ValueError:
        return None, invalid

    if not scheme:
        return None, invalid

    if scheme not in ALLOWED_SCHEMES:
        return None, ValidationResult.blocked(
            REASON_INVALID_PROTOCOL, BlockCategory.DISALLOWED_PROTOCOL
        )

    if not hostname:
        return None, invalid

    host = _canonical_host(hostname)
    if not host:
        return None, invalid
    return host, None


def _is_metadata_address(addr: str) -> bool:
    if is_cloud_metadata(addr):
        return True
    mapped = embedded_ipv4(addr)
    return mapped is not None and is_cloud_metadata(mapped)


# =============================================================================
# Mode policy (shared by both paths)
# =============================================================================


def _private_ip_reason(mode: SecurityMode) -> str:
    if mode is SecurityMode.STRICT:
        return REASON_PRIVATE_IP_STRICT
    return REASON_PRIVATE_IP_MODERATE


def _apply_mode_policy(
    address: str, mode: SecurityMode, localhost: bool
) -> tuple[ValidationResult, int, str]:
    """
    Apply the mode-dependent checks to an address.

    `address` is the literal hostname on the sync path and the resolved IP on
    the async path; `localhost` is precomputed by the caller because the async
    path also counts a localhost alias in the literal hostname.

    Returns (result, log_level, message) for auditing.
    """
    if mode is SecurityMode.PERMISSIVE:
        return (
            ValidationResult.ok(),
            logging.WARNING,
            "permissive mode: localhost and private IPs allowed",
        )

    if localhost:
        if mode is SecurityMode.STRICT:
            return (
                ValidationResult.blocked(
                    REASON_LOCALHOST_STRICT, BlockCategory.LOCALHOST
                ),
                logging.WARNING,
                "blocked: localhost not allowed in strict mode",
            )
        return (
            ValidationResult.ok(),
            logging.INFO,
            "localhost allowed (moderate mode)",
        )

    if is_private_ipv4(address):
        return (
            ValidationResult.blocked(
                _private_ip_reason(mode), BlockCategory.PRIVATE_ADDRESS
            ),
            logging.WARNING,
            "blocked: private IP address",
        )

    if is_reserved_ipv6(address):
        return (
            ValidationResult.blocked(
                REASON_IPV6_PRIVATE, BlockCategory.PRIVATE_ADDRESS
            ),
            logging.WARNING,
            "blocked: IPv6 private address",
        )

    return ValidationResult.ok(), logging.DEBUG, "URL validated as safe"


def _record_metrics(result: ValidationResult, mode: SecurityMode, path: str) -> None:
    m = get_guard_metrics()
    if m:
        m.record_validation(
            mode.value,
            path,
            allowed=result.valid,
            category=result.category.value if result.category else None,
        )


# =============================================================================
# Synchronous (DNS-free) path
# =============================================================================


def validate_url_sync(
    url: str, mode: SecurityMode | str | None = None
) -> ValidationResult:
    """
    Validate a URL using only its literal text (no DNS resolution).

    Intended for eager configuration validation where resolution is
    unavailable or inappropriate. Weaker than validate_webhook_url(): a
    hostname that resolves to a private or metadata address is not detected.

    Args:
        url: The URL to validate
        mode: Security mode name or member (default: strict)

    Returns:
        ValidationResult; never raises for malformed input

    Raises:
        ValueError: If mode is not a known security mode
    """
    security_mode = SecurityMode.parse(mode)
    result = _validate_literal(url, security_mode)
    _record_metrics(result, security_mode, "sync")
    return result


def _validate_literal(url: str, mode: SecurityMode) -> ValidationResult:
    hostname, failure = _parse_target(url)
    if failure is not None:
        return failure

    if _is_metadata_address(hostname):
        logger.warning(
            f"SSRF: Blocked cloud metadata endpoint (sync check): host={hostname}"
        )
        return ValidationResult.blocked(
            REASON_CLOUD_METADATA, BlockCategory.CLOUD_METADATA
        )

    result, _level, message = _apply_mode_policy(
        hostname, mode, localhost=is_localhost(hostname)
    )
    logger.log(
        logging.DEBUG if result.valid else logging.WARNING,
        f"SSRF (sync check): {message} host={hostname} mode={mode.value}",
    )
    return result


def validate_outbound_url(url: str, mode: SecurityMode | str | None = None) -> str:
    """
    Raising wrapper around validate_url_sync().

    Returns:
        The URL, unchanged, if validation passes

    Raises:
        SSRFBlockedError: If the URL is blocked
    """
    result = validate_url_sync(url, mode)
    if not result.valid:
        raise SSRFBlockedError(str(url), result.reason, result.category)
    return url


def is_url_safe(url: str, mode: SecurityMode | str | None = None) -> bool:
    """Check a URL with the sync path without raising."""
    return validate_url_sync(url, mode).valid


# =============================================================================
# Asynchronous (DNS-resolving) path
# =============================================================================


def _set_span_attributes(
    span: Any,
    hostname: str | None,
    mode: SecurityMode,
    resolved_ip: str | None,
    result: ValidationResult,
) -> None:
    if hostname:
        span.set_attribute("ssrf.hostname", hostname)
    span.set_attribute("ssrf.mode", mode.value)
    if resolved_ip:
        span.set_attribute("ssrf.resolved_ip", resolved_ip)
    span.set_attribute("ssrf.valid", result.valid)
    if result.reason:
        span.set_attribute("ssrf.reason", result.reason)


async def _resolve_with_timeout(
    resolver: Resolver, hostname: str, timeout: float
) -> str:
    start = time.perf_counter()
    success = False
    try:
        address = await asyncio.wait_for(resolver.resolve(hostname), timeout=timeout)
        success = True
        return address
    finally:
        m = get_guard_metrics()
        if m:
            m.record_dns_duration(time.perf_counter() - start, success)


async def validate_webhook_url(
    url: str,
    mode: SecurityMode | str | None = None,
    *,
    config: GuardConfig | None = None,
    resolver: Resolver | None = None,
    audit_sink: AuditSink | None = None,
) -> ValidationResult:
    """
    Validate a URL right before an outbound request (authoritative guard).

    Order of checks (short-circuiting):
    1. URL parses and uses http/https
    2. Hostname is not a cloud metadata endpoint (all modes)
    3. Hostname resolves (failure or timeout -> blocked, fail closed)
    4. Resolved address is not a cloud metadata endpoint (all modes)
    5. permissive mode -> allowed
    6. Localhost (literal alias or resolved loopback): strict blocks,
       moderate allows
    7. Resolved address is not a private IPv4 address
    8. Resolved address is not a private/reserved IPv6 address

    Every decision is reported to the audit sink.

    Args:
        url: The URL to validate
        mode: Security mode; defaults to config.webhook_mode
        config: Guard configuration (default: environment-derived)
        resolver: Name resolver (default: SystemResolver)
        audit_sink: Audit event sink (default: LoggingAuditSink)

    Returns:
        ValidationResult; never raises for malformed input or DNS errors

    Raises:
        ValueError: If mode is not a known security mode
    """
    config = config or get_guard_config()
    security_mode = (
        SecurityMode.parse(mode) if mode is not None else config.webhook_mode
    )
    resolver = resolver or get_default_resolver()
    sink = audit_sink or get_audit_sink()

    tracer = trace.get_tracer(TRACER_NAME)
    with tracer.start_as_current_span("outbound_guard.validate") as span:
        hostname, resolved_ip, result, level, message = await _validate_resolved(
            url, security_mode, config, resolver
        )
        _set_span_attributes(span, hostname, security_mode, resolved_ip, result)

    emit_audit_event(
        sink,
        SSRFAuditEvent(
            level=level,
            message=message,
            url=url if isinstance(url, str) else None,
            hostname=hostname,
            resolved_ip=resolved_ip,
            mode=security_mode.value,
            outcome=AuditOutcome.ALLOWED if result.valid else AuditOutcome.BLOCKED,
            reason=result.reason,
        ),
    )
    _record_metrics(result, security_mode, "async")
    return result


async def _validate_resolved(
    url: str,
    mode: SecurityMode,
    config: GuardConfig,
    resolver: Resolver,
) -> tuple[str | None, str | None, ValidationResult, int, str]:
    hostname, failure = _parse_target(url)
    if failure is not None:
        return None, None, failure, logging.WARNING, f"blocked: {failure.reason}"

    if _is_metadata_address(hostname):
        return (
            hostname,
            None,
            ValidationResult.blocked(
                REASON_CLOUD_METADATA, BlockCategory.CLOUD_METADATA
            ),
            logging.WARNING,
            "blocked: cloud metadata endpoint",
        )

    try:
        resolved = await _resolve_with_timeout(resolver, hostname, config.dns_timeout)
    except asyncio.TimeoutError:
        logger.warning(
            f"SSRF: DNS resolution timed out for {hostname} after "
            f"{config.dns_timeout}s, blocking"
        )
        return (
            hostname,
            None,
            ValidationResult.blocked(
                REASON_DNS_FAILED, BlockCategory.RESOLUTION_FAILED
            ),
            logging.WARNING,
            "blocked: DNS resolution timed out",
        )
    except Exception as e:
        # Any resolver failure fails closed; inability to verify is unsafe
        logger.warning(f"SSRF: DNS resolution failed for {hostname}: {e}")
        return (
            hostname,
            None,
            ValidationResult.blocked(
                REASON_DNS_FAILED, BlockCategory.RESOLUTION_FAILED
            ),
            logging.WARNING,
            "blocked: DNS resolution failed",
        )

    resolved_ip = _canonical_host(str(resolved))
    logger.debug(f"SSRF: DNS resolved {hostname} -> {resolved_ip} (mode={mode.value})")

    if _is_metadata_address(resolved_ip):
        return (
            hostname,
            resolved_ip,
            ValidationResult.blocked(
                REASON_RESOLVES_TO_METADATA, BlockCategory.CLOUD_METADATA
            ),
            logging.WARNING,
            "blocked: hostname resolves to cloud metadata IP",
        )

    localhost = is_localhost(hostname) or is_localhost(resolved_ip)
    result, level, message = _apply_mode_policy(resolved_ip, mode, localhost)
    return hostname, resolved_ip, result, level, message


async def validate_outbound_url_async(
    url: str,
    mode: SecurityMode | str | None = None,
    **kwargs: Any,
) -> str:
    """
    Raising wrapper around validate_webhook_url().

    Returns:
        The URL, unchanged, if validation passes

    Raises:
        SSRFBlockedError: If the URL is blocked
    """
    result = await validate_webhook_url(url, mode, **kwargs)
    if not result.valid:
        raise SSRFBlockedError(str(url), result.reason, result.category)
    return url


async def is_url_safe_async(
    url: str, mode: SecurityMode | str | None = None, **kwargs: Any
) -> bool:
    """Check a URL with the async path without raising."""
    result = await validate_webhook_url(url, mode, **kwargs)
    return result.valid


__all__ = [
    "ALLOWED_SCHEMES",
    "SSRFBlockedError",
    "validate_url_sync",
    "validate_outbound_url",
    "is_url_safe",
    "validate_webhook_url",
    "validate_outbound_url_async",
    "is_url_safe_async",
    "REASON_INVALID_URL",
    "REASON_INVALID_PROTOCOL",
    "REASON_CLOUD_METADATA",
    "REASON_RESOLVES_TO_METADATA",
    "REASON_LOCALHOST_STRICT",
    "REASON_PRIVATE_IP_STRICT",
    "REASON_PRIVATE_IP_MODERATE",
    "REASON_IPV6_PRIVATE",
    "REASON_DNS_FAILED",
]
