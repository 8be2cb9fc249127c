"""Typed application keys shared by the web routes."""

from __future__ import annotations

from typing import Optional

from aiohttp import web

from database.connection import SQLitePool
from services.handle_feed import HandleFeedPoller
from services.presence import PresenceService

PRESENCE_SERVICE_KEY = web.AppKey("presence_service", PresenceService)
POLLER_KEY = web.AppKey("handle_feed_poller", Optional[HandleFeedPoller])
DB_POOL_KEY = web.AppKey("db_pool", Optional[SQLitePool])
