"""Public presence endpoint used by the profile renderer."""

from __future__ import annotations

from aiohttp import web

from utils.validators import is_discord_user_id
from web.keys import PRESENCE_SERVICE_KEY

routes = web.RouteTableDef()


@routes.get("/api/discord/presence")
async def get_presence(request: web.Request) -> web.Response:
    user_id = (request.query.get("userId") or "").strip()
    if not is_discord_user_id(user_id):
        return web.json_response({"error": "Invalid Discord user ID."}, status=400)

    include_activity = request.query.get("activity", "1") != "0"
    service = request.app[PRESENCE_SERVICE_KEY]
    snapshot = await service.get_presence(user_id, include_activity=include_activity)
    return web.json_response(snapshot.to_dict(), headers={"Cache-Control": "no-store"})
