"""Prometheus metrics exposed on ``/metrics``."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUESTS_TOTAL = Counter(
    "facelens_requests_total",
    "Face pipeline requests by operation and outcome (success or error code).",
    ["operation", "outcome"],
)

ERRORS_TOTAL = Counter(
    "facelens_errors_total",
    "Error responses sent, by error code.",
    ["code"],
)

FACES_DETECTED_TOTAL = Counter(
    "facelens_faces_detected_total",
    "Faces returned after clustering and confidence filtering.",
)

STAGE_DURATION_SECONDS = Histogram(
    "facelens_stage_duration_seconds",
    "Time spent in each pipeline stage.",
    ["stage"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)
