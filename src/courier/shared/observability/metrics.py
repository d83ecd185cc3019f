"""Prometheus metrics for message delivery."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


# ── Delivery metrics ─────────────────────────────────────────
DELIVERY_ATTEMPTS = Counter(
    "courier_delivery_attempts_total",
    "Individual provider attempts, including breaker rejections",
    ["provider"],
)

DELIVERIES_TOTAL = Counter(
    "courier_deliveries_total",
    "Final submission outcomes",
    ["provider", "status"],  # sent / failed / queued / duplicate
)

DELIVERY_LATENCY = Histogram(
    "courier_delivery_latency_seconds",
    "Latency of a single provider call",
    ["provider"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Resilience metrics ───────────────────────────────────────
BREAKER_TRANSITIONS = Counter(
    "courier_breaker_transitions_total",
    "Circuit breaker state changes",
    ["provider", "state"],
)

ADMISSION_DENIALS = Counter(
    "courier_admission_denials_total",
    "Submissions refused by the token bucket",
)

QUEUE_DEPTH = Gauge(
    "courier_deferred_queue_depth",
    "Messages waiting in the deferred queue",
)
