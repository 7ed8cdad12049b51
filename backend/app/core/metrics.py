"""Prometheus metrics for the upload and transcoding pipeline.

Everything registers on a private ``REGISTRY`` that ``/metrics`` exposes.
Under a multi-worker server set ``PROMETHEUS_MULTIPROC_DIR`` and the
per-process files are aggregated instead.
"""

import os

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    multiprocess,
)

REGISTRY = CollectorRegistry()

if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
    multiprocess.MultiProcessCollector(REGISTRY)

APP_INFO = Info("video_transcoding_app", "Application information", registry=REGISTRY)

# HTTP layer, labelled by route template
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)
HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 10.0, 60.0, 300.0, 1800.0),
    registry=REGISTRY,
)
HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "HTTP requests being served",
    ["method", "endpoint"],
    registry=REGISTRY,
)

# Pipeline
UPLOADS_REQUESTED_TOTAL = Counter(
    "uploads_requested_total",
    "Upload descriptors requested, by outcome (issued, invalid, storage_error)",
    ["outcome"],
    registry=REGISTRY,
)
TRANSCODE_JOBS_TOTAL = Counter(
    "transcode_jobs_total",
    "Transcode requests by quality and outcome (success or the error kind)",
    ["quality", "outcome"],
    registry=REGISTRY,
)
TRANSCODE_DURATION_SECONDS = Histogram(
    "transcode_duration_seconds",
    "Wall time of a successful transcode, fetch to history write",
    ["quality"],
    buckets=(1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1200.0, 1800.0),
    registry=REGISTRY,
)
ENCODES_IN_PROGRESS = Gauge(
    "encodes_in_progress",
    "FFmpeg processes currently running",
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST


def set_app_info(version: str, environment: str) -> None:
    """Publish the build version and environment as ``video_transcoding_app_info``."""
    APP_INFO.info({"version": version, "environment": environment})
