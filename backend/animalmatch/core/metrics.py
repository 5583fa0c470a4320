"""Prometheus metrics configuration."""

from __future__ import annotations

import structlog
from fastapi import FastAPI
from prometheus_client import Counter, Gauge, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

logger = structlog.get_logger("animalmatch.metrics")

app_info = Gauge(
    "app_info",
    "Application information",
    ["version"],
)

# Matching
animal_matches_total = Counter(
    "animal_matches_total",
    "Total number of names matched to an animal",
)
animal_match_ties = Histogram(
    "animal_match_ties",
    "Number of animals tied for the closest distance per match",
    buckets=(1, 2, 3, 5, 8, 13, 21),
)

# Payment gate
payment_gate_decisions_total = Counter(
    "payment_gate_decisions_total",
    "Payment gate outcomes for protected routes",
    ["outcome"],  # outcome: allowed, denied, error
)
payment_settlements_total = Counter(
    "payment_settlements_total",
    "Settlement attempts after a protected route responded",
    ["outcome"],  # outcome: success, failed
)


def setup_metrics(app: FastAPI, app_version: str) -> None:
    """Instrument the app and expose /metrics.

    Args:
        app: FastAPI application instance
        app_version: Application version
    """
    if getattr(app.state, "metrics_initialized", False):
        logger.debug("Metrics already initialized for this app instance, skipping")
        return

    instrumentator = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=[
            "/metrics",
            "/docs",
            "/openapi.json",
            "/redoc",
        ],
    )
    instrumentator.instrument(app).expose(app, endpoint="/metrics")

    app.state.metrics_initialized = True
    app_info.labels(version=app_version).set(1)

    logger.info("Metrics initialized", version=app_version)
