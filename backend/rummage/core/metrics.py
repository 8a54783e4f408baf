"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

SCANS_TOTAL = Counter(
    "rummage_scans_total",
    "Scans by terminal status",
    labelnames=("status",),
    registry=REGISTRY,
)

SCAN_DURATION = Histogram(
    "rummage_scan_duration_seconds",
    "Wall-clock duration of completed scans",
    registry=REGISTRY,
)

FILES_INDEXED = Counter(
    "rummage_files_indexed_total",
    "File records written by completed scans",
    registry=REGISTRY,
)

ACTIVE_SCANS = Gauge(
    "rummage_active_scans",
    "Scans currently in flight",
    registry=REGISTRY,
)

SIMILARITY_SEARCHES = Counter(
    "rummage_similarity_searches_total",
    "Vector similarity searches by modality",
    labelnames=("modality",),
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "SCANS_TOTAL",
    "SCAN_DURATION",
    "FILES_INDEXED",
    "ACTIVE_SCANS",
    "SIMILARITY_SEARCHES",
    "metrics_response",
]
