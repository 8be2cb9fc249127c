"""Route registration for the aiohttp app."""

from __future__ import annotations

from aiohttp import web

from .health import routes as health_routes
from .presence import routes as presence_routes


def register_routes(app: web.Application) -> None:
    app.add_routes(health_routes)
    app.add_routes(presence_routes)
