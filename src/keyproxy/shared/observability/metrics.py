"""Prometheus metrics for the key proxy."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


# ── HTTP metrics ─────────────────────────────────────────────
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ── Upstream metrics ─────────────────────────────────────────
UPSTREAM_ATTEMPTS_TOTAL = Counter(
    "upstream_attempts_total",
    "Outbound attempts to the model API by classified outcome",
    ["outcome"],
)

UPSTREAM_ATTEMPT_LATENCY = Histogram(
    "upstream_attempt_latency_seconds",
    "Latency of a single outbound attempt",
    ["outcome"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
)

DISPATCH_RESULTS_TOTAL = Counter(
    "dispatch_results_total",
    "Terminal dispatch results",
    ["result"],
)

# ── Key pool metrics ─────────────────────────────────────────
KEY_COOLDOWNS_TOTAL = Counter(
    "key_cooldowns_total",
    "Times a key entered cooldown",
)

KEY_DEGRADED_SELECTIONS_TOTAL = Counter(
    "key_degraded_selections_total",
    "Forced selections made while every key was cooling",
)
