"""Health check and Prometheus metrics routes."""

from __future__ import annotations

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from web.keys import DB_POOL_KEY, POLLER_KEY

routes = web.RouteTableDef()


@routes.get("/health")
async def health_check(request: web.Request) -> web.Response:
    db_pool = request.app.get(DB_POOL_KEY)
    poller = request.app.get(POLLER_KEY)

    data = {
        "status": "ok",
        "db_pool_size": db_pool.size if db_pool is not None else 0,
        "handle_feed": poller.snapshot() if poller is not None else None,
    }
    return web.json_response(data)


@routes.get("/metrics")
async def metrics(request: web.Request) -> web.Response:
    """Expose Prometheus metrics."""
    response = web.Response(body=generate_latest())
    # CONTENT_TYPE_LATEST carries a charset, which web.Response(content_type=...) rejects
    response.headers["Content-Type"] = CONTENT_TYPE_LATEST
    return response
