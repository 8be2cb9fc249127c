"""aiohttp application factory for the presence endpoint, health and metrics."""

from __future__ import annotations

from typing import Optional

from aiohttp import web

from database.connection import SQLitePool
from services.handle_feed import HandleFeedPoller
from services.presence import PresenceService
from web.keys import DB_POOL_KEY, POLLER_KEY, PRESENCE_SERVICE_KEY
from web.middleware import metrics_middleware, security_headers_middleware
from web.routes import register_routes


def create_app(
    presence: PresenceService,
    poller: Optional[HandleFeedPoller] = None,
    db_pool: Optional[SQLitePool] = None,
) -> web.Application:
    """Create and configure the web application.

    Args:
        presence: Service answering presence lookups
        poller: Handle feed, reported by ``/health`` when running
        db_pool: Database pool, reported by ``/health``

    Returns:
        Configured aiohttp application
    """
    app = web.Application(middlewares=[metrics_middleware, security_headers_middleware])
    app[PRESENCE_SERVICE_KEY] = presence
    app[POLLER_KEY] = poller
    app[DB_POOL_KEY] = db_pool

    register_routes(app)
    return app
