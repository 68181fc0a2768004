"""Prometheus metrics for the verification API.

Adds an HTTP middleware that records request latency per method/path/status
and counters for the streaming pipeline.
"""

import time
from typing import Callable, Awaitable

from prometheus_client import Counter, Histogram
from starlette.requests import Request
from starlette.responses import Response

# Streams stay open for the whole model call, so buckets reach further than plain API latencies
REQUEST_LATENCY = Histogram(
    "verifier_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0),
)

STREAM_CHUNKS = Counter(
    "verifier_stream_chunks_total",
    "Transport chunks emitted to streaming clients",
)

STREAMS = Counter(
    "verifier_streams_total",
    "Completion streams by outcome",
    labelnames=("outcome",),
)

ATTACHMENT_DECODE_FAILURES = Counter(
    "verifier_attachment_decode_failures_total",
    "Inline attachments dropped because they could not be decoded",
)


def sanitize_path(path: str) -> str:
    """Reduce high-cardinality paths (e.g., /api/orders/{id}) to a coarse label."""
    if not path:
        return "/"
    segs = [s for s in path.split("?")[0].split("/") if s]
    if not segs:
        return "/"
    if segs[0] == "api" and len(segs) > 1:
        return "/api/" + segs[1]
    return "/" + segs[0]


def metrics_middleware_factory() -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    async def middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.url.path.startswith("/metrics"):
            return await call_next(request)
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        REQUEST_LATENCY.labels(
            method=request.method,
            path=sanitize_path(request.url.path),
            status=str(response.status_code),
        ).observe(elapsed)
        return response

    return middleware
