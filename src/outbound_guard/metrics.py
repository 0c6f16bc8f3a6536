"""
OTel Metrics Instrument Registry
=================================

Central registry for the OpenTelemetry instruments used by the outbound guard.

Instruments are created once from a Meter and recorded by the validation
entry points and the guarded HTTP client. When the registry has not been
initialised nothing is recorded.

Usage:
    from opentelemetry import metrics
    from outbound_guard.metrics import init_guard_metrics, get_guard_metrics

    init_guard_metrics(metrics.get_meter("outbound_guard"))

    m = get_guard_metrics()
    if m:
        m.record_validation("strict", "async", allowed=False, category="localhost")
"""

import logging
from typing import Optional

from opentelemetry.metrics import Counter, Histogram, Meter

logger = logging.getLogger(__name__)

# DNS resolution duration (seconds): covers 1ms to ~8s
DNS_DURATION_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.0,
    4.0,
    8.0,
)


class GuardMetrics:
    """
    OTel metric instruments for outbound URL validation.

    - outbound_guard.validation.total: verdicts by mode, path, outcome, category
    - outbound_guard.dns.duration: time spent resolving hostnames
    - outbound_guard.verdict_cache.hits / .misses: caller-side verdict cache
    """

    def __init__(self, meter: Meter) -> None:
        self._meter = meter

        self.validation_total: Counter = meter.create_counter(
            name="outbound_guard.validation.total",
            description="Outbound URL validation verdicts",
            unit="{validation}",
        )

        self.dns_duration: Histogram = meter.create_histogram(
            name="outbound_guard.dns.duration",
            description="Duration of hostname resolution during validation",
            unit="s",
            explicit_bucket_boundaries_advisory=DNS_DURATION_BUCKETS,
        )

        self.verdict_cache_hits: Counter = meter.create_counter(
            name="outbound_guard.verdict_cache.hits",
            description="Verdict cache hits in the guarded HTTP client",
            unit="{lookup}",
        )

        self.verdict_cache_misses: Counter = meter.create_counter(
            name="outbound_guard.verdict_cache.misses",
            description="Verdict cache misses in the guarded HTTP client",
            unit="{lookup}",
        )

        logger.info("GuardMetrics: all instruments created")

    def record_validation(
        self,
        mode: str,
        path: str,
        allowed: bool,
        category: str | None = None,
    ) -> None:
        """Record one validation verdict."""
        attributes = {
            "mode": mode,
            "path": path,
            "outcome": "allowed" if allowed else "blocked",
        }
        if category:
            attributes["category"] = category
        self.validation_total.add(1, attributes)

    def record_dns_duration(self, duration_s: float, success: bool) -> None:
        """Record how long a resolution took."""
        self.dns_duration.record(duration_s, {"success": success})


_guard_metrics: Optional[GuardMetrics] = None


def init_guard_metrics(meter: Meter) -> GuardMetrics:
    """Initialize the global GuardMetrics singleton."""
    global _guard_metrics
    _guard_metrics = GuardMetrics(meter)
    return _guard_metrics


def get_guard_metrics() -> Optional[GuardMetrics]:
    """Get the global GuardMetrics singleton, or None if not initialized."""
    return _guard_metrics


def reset_guard_metrics() -> None:
    """
    Reset the global GuardMetrics singleton.

    Must be called in test fixtures to avoid singleton leaks between tests.
    """
    global _guard_metrics
    _guard_metrics = None


__all__ = [
    "GuardMetrics",
    "DNS_DURATION_BUCKETS",
    "init_guard_metrics",
    "get_guard_metrics",
    "reset_guard_metrics",
]
