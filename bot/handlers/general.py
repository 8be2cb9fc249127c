"""Informational commands: site, ping, support and help."""

from __future__ import annotations

from typing import Optional

from core.constants import PremiumPlan
from services.lookup_service import ConnectionContext
from utils.validators import format_payment_methods
from ..deps import BotDeps
from ..dispatcher import CommandSpec, Dispatcher
from ..replies import Reply, base_embed, info_reply, success_reply
from ..requests import CommandRequest


class GeneralHandlers:
    def __init__(self, deps: BotDeps) -> None:
        self.deps = deps

    def setup(self, dispatcher: Dispatcher) -> None:
        dispatcher.command("site", CommandSpec(self.site, "Open atlas.lol"))
        dispatcher.command("ping", CommandSpec(self.ping, "Check Atlas bot latency"))
        dispatcher.command("support", CommandSpec(self.support, "Open Atlas support links"))
        dispatcher.command("help", CommandSpec(self.help, "List Atlas bot commands"))

    async def site(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        return info_reply("Atlas", f"[Open atlas.lol]({self.deps.site})")

    async def ping(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        gateway = self.deps.gateway
        latency = gateway.latency if gateway is not None else 0.0
        # discord.py reports nan/inf until the first heartbeat ack
        latency_ms = int(latency * 1000) if latency == latency and latency != float("inf") else 0
        return success_reply(
            "Atlas Bot Status",
            f"Bot latency: **{max(0, latency_ms)}ms**\nDiscord connection: **Online**",
        )

    async def support(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        config = self.deps.config
        return success_reply(
            "Atlas Support",
            "Need help or account review?\n"
            f"[Support/Appeals]({config.appeal_url})\n"
            f"[Premium Tickets]({config.premium_ticket_url})",
        )

    async def help(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        context = await self.deps.lookups.connection_context(request.actor.id)
        embed = base_embed(
            "Atlas Bot Commands",
            "All commands return private embeds so your account details stay private.",
        )

        if context.account is None:
            embed.add_field("Connection required first", f"[Connect Atlas]({self.deps.config.connect_url})")
        else:
            admin = " (Admin)" if context.is_admin else ""
            embed.add_field("Connected account", f"@{context.account.handle}{admin}")

        embed.add_field(
            "Core",
            "`/site`, `/ping`, `/help`, `/support`, `/connect`, `/account`, `/editor`, `/dashboard`",
        )
        embed.add_field(
            "Premium",
            f"`/premium`, `/premiuminfo`\nLifetime only: **${PremiumPlan.PRICE_USD}** "
            f"via **{format_payment_methods().replace(', ', ' / ')}**",
        )
        embed.add_field(
            "Staff Premium",
            "`/give-premium`, `/remove-premium`, `/premium-status`, `/claim-ticket`, `/close-ticket`",
        )
        embed.add_field("Profile Lookup", "`/profile`, `/whois`")
        embed.add_field("Whois", "Use `/whois handle:@name` for full profile details, badges, and stats.")
        embed.add_field(
            "Admin",
            "You can use `/admin` and receive extra moderation data in `/whois`."
            if context.is_admin
            else "Admin extras unlock automatically when your connected Atlas account is admin.",
        )
        return Reply(embeds=[embed])
