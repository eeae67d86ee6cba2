"""Prometheus metrics for view ingestion and stats queries.

Scraped through the ``/metrics`` route.
"""
from __future__ import annotations
from prometheus_client import Counter, Gauge

VIEWS_ENQUEUED = Counter(
    "views_enqueued_total",
    "Views pushed onto the ingestion queue",
)

VIEWS_RECORDED = Counter(
    "views_recorded_total",
    "Views processed by the recorder",
    labelnames=("outcome",),
)

VIEW_FAILURES = Counter(
    "view_failures_total",
    "Recorder attempts that failed with a communication error",
)

VIEWS_REQUEUED = Counter(
    "views_requeued_total",
    "Views pushed back onto the queue after a failed attempt",
)

VIEWS_DEAD_LETTERED = Counter(
    "views_dead_lettered_total",
    "Views abandoned by the ingestion queue",
    labelnames=("reason",),
)

VIEW_QUEUE_DEPTH = Gauge(
    "view_queue_depth",
    "Views waiting in the ingestion queue",
)

STATS_REQUESTS = Counter(
    "stats_requests_total",
    "Comic stats lookups labeled by outcome",
    labelnames=("outcome",),
)

STORE_RECONNECTS = Counter(
    "store_reconnects_total",
    "Store connections torn down after a failed liveness probe",
)


def incr(counter, amount: float = 1.0, **labels) -> None:
    try:
        (counter.labels(**labels) if labels else counter).inc(amount)
    except Exception:
        pass


def set_gauge(gauge, value: float) -> None:
    try:
        gauge.set(value)
    except Exception:
        pass


__all__ = [
    "VIEWS_ENQUEUED",
    "VIEWS_RECORDED",
    "VIEW_FAILURES",
    "VIEWS_REQUEUED",
    "VIEWS_DEAD_LETTERED",
    "VIEW_QUEUE_DEPTH",
    "STATS_REQUESTS",
    "STORE_RECONNECTS",
    "incr",
    "set_gauge",
]
