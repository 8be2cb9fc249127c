"""Slash-command registration.

Guild commands are bulk-upserted once per process per
``(guild, COMMAND_SET_VERSION)``. Bumping the version forces a resync on the
next start.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import aiohttp
import discord

from core.constants import COMMAND_SET_VERSION
from core.exceptions import GatewayError
from core.logger import get_logger

logger = get_logger(__name__)

DISCORD_API_BASE = "https://discord.com/api/v10"


class CommandRegistrar:
    def __init__(self, version: str = COMMAND_SET_VERSION) -> None:
        self.version = version
        self._registered: Set[Tuple[str, str]] = set()

    def is_registered(self, guild_id: str) -> bool:
        return (guild_id, self.version) in self._registered

    async def ensure(self, client: discord.Client, guild_id: str, payload: List[Dict[str, Any]]) -> bool:
        """Upsert the command set; returns ``False`` when it was already done."""
        if self.is_registered(guild_id):
            return False
        if client.application_id is None:
            logger.warning("Skipping command registration: application id unknown")
            return False

        try:
            await client.http.bulk_upsert_guild_commands(client.application_id, int(guild_id), payload)
        except discord.HTTPException as e:
            raise GatewayError(f"Command registration failed for guild {guild_id}: {e}") from e

        self._registered.add((guild_id, self.version))
        logger.info(
            f"Registered {len(payload)} guild commands ({self.version})",
            extra={"guild_id": guild_id},
        )
        return True


async def sync_commands_rest(
    token: str,
    application_id: str,
    guild_id: str,
    payload: Sequence[Dict[str, Any]],
    session: Optional[aiohttp.ClientSession] = None,
) -> List[Dict[str, Any]]:
    """Overwrite the guild command set over the REST API, without a gateway connection."""
    url = f"{DISCORD_API_BASE}/applications/{application_id}/guilds/{guild_id}/commands"
    headers = {"Authorization": f"Bot {token}", "Content-Type": "application/json"}

    owns_session = session is None
    session = session or aiohttp.ClientSession()
    try:
        async with session.put(url, json=list(payload), headers=headers) as response:
            if response.status >= 400:
                body = await response.text()
                raise GatewayError(f"Command sync failed ({response.status}): {body[:500]}")
            return await response.json()
    finally:
        if owns_session:
            await session.close()
