"""Prometheus metrics for the booking service."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Histogram,
    Info,
    start_http_server,
)

SYSTEM_INFO = Info("booking_service", "Booking service information")

# ---------------------------------------------------------------------------
# Booking metrics
# ---------------------------------------------------------------------------

BOOKING_ATTEMPTS = Counter(
    "booking_attempts_total",
    "Booking requests by final outcome",
    ["outcome"],
)

BOOKING_RETRIES = Counter(
    "booking_retries_total",
    "Booking transactions re-run after a conflict",
    ["reason"],
)

BOOKING_LATENCY = Histogram(
    "booking_latency_seconds",
    "Wall time of a booking request including retries",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0],
)

# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------

ENROLLMENT_QUERIES = Counter(
    "enrollment_queries_total",
    "User enrollment listings by outcome",
    ["outcome"],
)


def start_metrics_server(port: int = 9090, version: str = "unknown") -> None:
    """Start Prometheus metrics HTTP server in a background thread."""
    SYSTEM_INFO.info({"version": version})
    start_http_server(port)


def record_booking(outcome: str, seconds: float) -> None:
    """Record the final outcome and latency of one booking request."""
    BOOKING_ATTEMPTS.labels(outcome=outcome).inc()
    BOOKING_LATENCY.observe(seconds)


def record_retry(reason: str) -> None:
    """Record a booking transaction being re-run."""
    BOOKING_RETRIES.labels(reason=reason).inc()


def record_enrollment_query(outcome: str) -> None:
    """Record a user enrollment listing."""
    ENROLLMENT_QUERIES.labels(outcome=outcome).inc()
