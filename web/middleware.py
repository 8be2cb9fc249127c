"""aiohttp middlewares: request metrics and response headers."""

from __future__ import annotations

import time

from aiohttp import web
from prometheus_client import Counter, Histogram

from core.logger import get_logger

logger = get_logger(__name__)

REQUEST_LATENCY = Histogram(
    "http_request_latency_seconds",
    "HTTP request latency",
    ["method", "path"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5),
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "Total number of 5xx responses",
    ["method", "path"],
)


def _route_path(request: web.Request) -> str:
    resource = request.match_info.route.resource
    if resource is None:
        return "unmatched"
    return resource.canonical


@web.middleware
async def metrics_middleware(request: web.Request, handler):
    start = time.perf_counter()
    path = _route_path(request)
    try:
        response = await handler(request)
    except web.HTTPException as e:
        if e.status >= 500:
            REQUEST_ERRORS.labels(method=request.method, path=path).inc()
        raise
    except Exception:
        REQUEST_ERRORS.labels(method=request.method, path=path).inc()
        logger.exception(f"Unhandled error serving {request.method} {request.path}")
        raise
    finally:
        REQUEST_LATENCY.labels(method=request.method, path=path).observe(time.perf_counter() - start)

    if response.status >= 500:
        REQUEST_ERRORS.labels(method=request.method, path=path).inc()
    return response


@web.middleware
async def security_headers_middleware(request: web.Request, handler):
    response = await handler(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    return response
