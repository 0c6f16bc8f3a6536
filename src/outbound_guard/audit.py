"""
SSRF Audit Events
=================

Structured audit events emitted by the request-time guard for every
decision it makes. Operators need visibility into blocked attempts and into
intentionally weakened postures (permissive mode, moderate-mode localhost).

Captured Fields:
- timestamp: When the decision was made (UTC)
- level: Logging level of the event (warning for blocks and permissive
  bypass, info for moderate-mode localhost, debug otherwise)
- message: Human-readable summary
- url / hostname / resolved_ip: What was validated
- mode: Security mode the decision was made under
- outcome: "allowed" or "blocked"
- reason: Block reason (blocked outcomes only)

The guard never persists events itself; a sink decides where they go.

Usage:
    from outbound_guard.audit import LoggingAuditSink, MemoryAuditSink

    result = await validate_webhook_url(url, audit_sink=MemoryAuditSink())
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class AuditOutcome(str, Enum):
    """Outcome of an audited validation."""

    ALLOWED = "allowed"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class SSRFAuditEvent:
    """A single audited validation decision."""

    level: int
    message: str
    mode: str
    outcome: AuditOutcome
    url: str | None = None
    hostname: str | None = None
    resolved_ip: str | None = None
    reason: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": logging.getLevelName(self.level),
            "message": self.message,
            "url": self.url,
            "hostname": self.hostname,
            "resolved_ip": self.resolved_ip,
            "mode": self.mode,
            "outcome": self.outcome.value,
            "reason": self.reason,
        }


@runtime_checkable
class AuditSink(Protocol):
    """Receives audit events from the guard."""

    def emit(self, event: SSRFAuditEvent) -> None: ...


class LoggingAuditSink:
    """
    Default sink: write events to the application logger.

    The full event is attached under `extra` so structured log handlers
    (JSON formatters, OTel log bridges) can index the fields.
    """

    def __init__(self, target: logging.Logger | None = None):
        self._logger = target or logger

    def emit(self, event: SSRFAuditEvent) -> None:
        self._logger.log(
            event.level,
            f"SSRF: {event.message} hostname={event.hostname} "
            f"resolved_ip={event.resolved_ip} mode={event.mode} "
            f"outcome={event.outcome.value}",
            extra={
                "ssrf_audit": True,
                "audit_event": event.to_dict(),
            },
        )


class MemoryAuditSink:
    """Collect events in memory (tests and diagnostics)."""

    def __init__(self) -> None:
        self.events: list[SSRFAuditEvent] = []

    def emit(self, event: SSRFAuditEvent) -> None:
        self.events.append(event)

    def clear(self) -> None:
        self.events.clear()

    @property
    def blocked(self) -> list[SSRFAuditEvent]:
        return [e for e in self.events if e.outcome is AuditOutcome.BLOCKED]


_default_sink: AuditSink | None = None


def get_audit_sink() -> AuditSink:
    """Get the process-wide default audit sink."""
    global _default_sink
    if _default_sink is None:
        _default_sink = LoggingAuditSink()
    return _default_sink


def set_audit_sink(sink: AuditSink | None) -> None:
    """Replace the default audit sink. Passing None restores LoggingAuditSink."""
    global _default_sink
    _default_sink = sink


def emit_audit_event(sink: AuditSink, event: SSRFAuditEvent) -> None:
    """
    Deliver an event to a sink without letting sink failures change a verdict.

    A broken sink is reported on the module logger; the validation result
    stands either way.
    """
    try:
        sink.emit(event)
    except Exception as e:
        logger.error(
            f"AUDIT_FALLBACK: sink {type(sink).__name__} failed: {e}",
            extra={"ssrf_audit": True, "audit_event": event.to_dict()},
        )


__all__ = [
    "AuditOutcome",
    "SSRFAuditEvent",
    "AuditSink",
    "LoggingAuditSink",
    "MemoryAuditSink",
    "get_audit_sink",
    "set_audit_sink",
    "emit_audit_event",
]
