"""discord.py client for the Atlas bot.

The client only translates: raw interactions go through
:func:`bot.requests.parse_interaction` and the :class:`Dispatcher`, and the
resulting :class:`Reply` is delivered back. Delivery failures are logged and
never propagate into the gateway event loop.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import discord

from config import Config
from core.exceptions import GatewayError, ValidationError
from core.logger import get_logger
from .commands import CommandRegistrar
from .dispatcher import Dispatcher
from .gateway import build_modal, build_view, to_discord_embed
from .replies import Reply, error_reply
from .requests import parse_interaction

logger = get_logger(__name__)


def default_intents() -> discord.Intents:
    intents = discord.Intents.none()
    intents.guilds = True
    intents.members = True
    intents.presences = True
    return intents


class AtlasBot(discord.Client):
    def __init__(self, config: Config, intents: Optional[discord.Intents] = None) -> None:
        super().__init__(intents=intents or default_intents())
        self.config = config
        self.dispatcher: Optional[Dispatcher] = None
        self.registrar = CommandRegistrar()
        self.ready_event = asyncio.Event()

    def attach(self, dispatcher: Dispatcher) -> None:
        self.dispatcher = dispatcher

    async def on_ready(self) -> None:
        logger.info(f"Discord bot connected as {self.user} ({self.user.id if self.user else '?'})")
        self.ready_event.set()
        await self.ensure_guild_commands()

    async def ensure_guild_commands(self) -> None:
        if self.dispatcher is None or not self.config.guild_id:
            return
        try:
            await self.registrar.ensure(self, self.config.guild_id, self.dispatcher.command_payload())
        except GatewayError as e:
            logger.error(f"Guild command registration failed: {e}", extra={"guild_id": self.config.guild_id})

    async def on_interaction(self, interaction: discord.Interaction) -> None:
        if self.dispatcher is None:
            return

        try:
            request = parse_interaction(interaction)
        except ValidationError as e:
            logger.warning(f"Rejected malformed interaction: {e}", extra={"interaction_id": interaction.id})
            reply = error_reply(e.title, str(e))
        else:
            reply = await self.dispatcher.dispatch(request)

        try:
            await self.respond(interaction, reply)
        except discord.HTTPException as e:
            logger.error(
                f"Interaction reply failed: {e}",
                extra={"interaction_id": interaction.id, "user_id": interaction.user.id},
            )
        await reply.run_after()

    async def respond(self, interaction: discord.Interaction, reply: Reply) -> None:
        if reply.modal is not None:
            await interaction.response.send_modal(build_modal(reply.modal))
            return

        kwargs: Dict[str, Any] = {
            "embeds": [to_discord_embed(embed) for embed in reply.embeds],
            "ephemeral": reply.ephemeral,
        }
        if reply.content:
            kwargs["content"] = reply.content
        view = build_view(reply.buttons)
        if view is not None:
            kwargs["view"] = view

        if interaction.response.is_done():
            await interaction.followup.send(**kwargs)
        else:
            await interaction.response.send_message(**kwargs)

    async def on_error(self, event_method: str, *args: Any, **kwargs: Any) -> None:
        logger.exception(f"Unhandled error in discord event {event_method}")
