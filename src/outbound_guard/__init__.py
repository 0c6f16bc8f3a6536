"""
Outbound Guard
==============

SSRF protection for outbound HTTP(S) requests to caller-supplied URLs
(webhooks, per-instance API base URLs).

Features:
- Three trust modes (strict, moderate, permissive); cloud metadata endpoints
  are blocked in all of them
- DNS-free literal check for configuration loading (validate_url_sync)
- DNS-resolving request-time check that defeats DNS rebinding
  (validate_webhook_url)
- Audit events, OpenTelemetry metrics and spans
- httpx client wrapper that validates every request, redirects included

Usage:
    from outbound_guard import validate_webhook_url

    result = await validate_webhook_url("https://hooks.example.com/x")
    if not result.valid:
        print(result.reason)
"""

from .models import BlockCategory, SecurityMode, ValidationResult
from .config import (
    GuardConfig,
    GuardConfigError,
    clear_guard_config_cache,
    get_guard_config,
)
from .resolver import (
    ResolutionError,
    Resolver,
    StaticResolver,
    SystemResolver,
)
from .audit import (
    AuditOutcome,
    AuditSink,
    LoggingAuditSink,
    MemoryAuditSink,
    SSRFAuditEvent,
)
from .url_security import (
    SSRFBlockedError,
    is_url_safe,
    is_url_safe_async,
    validate_outbound_url,
    validate_outbound_url_async,
    validate_url_sync,
    validate_webhook_url,
)
from .verdict_cache import VerdictCache
from .http_client import GuardedHTTPClient, create_guarded_client
from .instance_context import (
    ContextValidationResult,
    InstanceContext,
    is_instance_context,
    validate_instance_context,
)

__version__ = "0.1.0"
__all__ = [
    # Types
    "SecurityMode",
    "BlockCategory",
    "ValidationResult",
    # Config
    "GuardConfig",
    "GuardConfigError",
    "get_guard_config",
    "clear_guard_config_cache",
    # Resolution
    "Resolver",
    "ResolutionError",
    "SystemResolver",
    "StaticResolver",
    # Audit
    "AuditOutcome",
    "AuditSink",
    "SSRFAuditEvent",
    "LoggingAuditSink",
    "MemoryAuditSink",
    # Validation
    "SSRFBlockedError",
    "validate_url_sync",
    "validate_outbound_url",
    "is_url_safe",
    "validate_webhook_url",
    "validate_outbound_url_async",
    "is_url_safe_async",
    # HTTP invoker
    "VerdictCache",
    "GuardedHTTPClient",
    "create_guarded_client",
    # Instance context
    "InstanceContext",
    "ContextValidationResult",
    "validate_instance_context",
    "is_instance_context",
]
