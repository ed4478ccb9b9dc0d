"""
Prometheus metrics for the Book Tracker API.
"""

import time
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Histogram, generate_latest

from utilities.logger import RequestLogger

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "route", "status_code"]
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "Duration of HTTP requests in seconds",
    ["method", "route", "status_code"],
    buckets=[.001, .005, .015, .05, .1, .2, .5, 1, 2, 5, 10]
)

MONGO_OPERATION_LATENCY = Histogram(
    "mongo_operation_duration_seconds",
    "Duration of MongoDB operations in seconds",
    ["operation", "collection"],
    buckets=[.001, .005, .015, .05, .1, .2, .5, 1, 2]
)

request_logger = RequestLogger()


def normalize_path(path: str) -> str:
    """
    Normalize path to reduce label cardinality.
    Replace numeric IDs with placeholders, e.g. /api/books/12 -> /api/books/{id}.
    """
    parts = path.split("/")
    normalized = ["{id}" if part.isdigit() else part for part in parts]
    return "/".join(normalized) or "/"


@asynccontextmanager
async def track_db_operation(operation: str, collection: str = "books"):
    """Time a MongoDB call and record it under the given operation name."""
    start_time = time.perf_counter()
    try:
        yield
    finally:
        MONGO_OPERATION_LATENCY.labels(operation=operation, collection=collection).observe(
            time.perf_counter() - start_time
        )


async def metrics_middleware(request: Request, call_next: Callable) -> Response:
    """
    Record request count and latency and log every completed request.
    """
    path = request.url.path
    if path == "/metrics":
        return await call_next(request)

    method = request.method
    route = normalize_path(path)
    start_time = time.perf_counter()
    status_code = 500

    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        duration = time.perf_counter() - start_time
        labels = {"method": method, "route": route, "status_code": str(status_code)}
        REQUEST_COUNT.labels(**labels).inc()
        REQUEST_LATENCY.labels(**labels).observe(duration)
        request_logger.log_request(method, path, status_code, duration * 1000)


def render_metrics() -> Response:
    """Expose the registry in Prometheus text format."""
    return Response(generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
