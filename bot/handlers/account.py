"""Commands for a Discord user's own linked Atlas account."""

from __future__ import annotations

from typing import Optional

from core.constants import Colors
from core.exceptions import DatabaseError, NotFoundError
from core.logger import get_logger
from services.lookup_service import ConnectionContext
from utils.formatting import format_badges
from utils.validators import is_valid_handle, normalize_handle
from ..deps import BotDeps
from ..dispatcher import CommandOption, CommandSpec, Dispatcher
from ..embeds import whois_embed
from ..replies import Reply, base_embed, error_reply, not_connected_reply, success_reply
from ..requests import CommandRequest

logger = get_logger(__name__)

HANDLE_OPTION = CommandOption("handle", "Atlas handle (with or without @)")


def _enabled(flag: bool) -> str:
    return "Enabled" if flag else "Disabled"


class AccountHandlers:
    def __init__(self, deps: BotDeps) -> None:
        self.deps = deps

    def setup(self, dispatcher: Dispatcher) -> None:
        dispatcher.command("connect", CommandSpec(self.connect, "Connect this Discord account to Atlas"))
        dispatcher.command(
            "account",
            CommandSpec(self.account, "Show your Atlas connection status and quick links", requires_account=True),
        )
        dispatcher.command("editor", CommandSpec(self.editor, "Open your Atlas editor", requires_account=True))
        dispatcher.command("dashboard", CommandSpec(self.dashboard, "Open your Atlas dashboard", requires_account=True))
        dispatcher.command(
            "profile",
            CommandSpec(
                self.profile,
                "Build a public profile URL from handle",
                options=(HANDLE_OPTION,),
                requires_account=True,
            ),
        )
        dispatcher.command(
            "whois",
            CommandSpec(
                self.whois,
                "Lookup an Atlas profile by handle",
                options=(HANDLE_OPTION,),
                requires_account=True,
            ),
        )
        dispatcher.command(
            "admin",
            CommandSpec(self.admin, "Open Atlas admin tools (connected admin account required)", requires_account=True),
        )

    def _quick_links(self, handle: str) -> str:
        site = self.deps.site
        return f"[Editor]({site}/editor) | [Dashboard]({site}/dashboard) | [Profile]({site}/@{handle})"

    async def connect(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        context = await self.deps.lookups.connection_context(request.actor.id)
        if context.account is None:
            return not_connected_reply(self.deps.config.connect_url)

        account = context.account
        display = f" ({account.display_name})" if account.display_name else ""
        embed = base_embed("Atlas Connected", f"Connected as **@{account.handle}**{display}.", Colors.SUCCESS)
        embed.add_field("Quick links", self._quick_links(account.handle))
        embed.add_field(
            "Account state",
            "\n".join([
                f"Badges: {format_badges(account.badges)}",
                f"Visibility: {'Public' if account.is_public else 'Private'}",
                f"Comments: {_enabled(account.comments_enabled)}",
                f"Discord Presence: {_enabled(account.discord_presence_enabled)}",
                f"Role: {'Admin' if context.is_admin else 'Creator'}",
            ]),
        )
        embed.footer = "Use /editor and /dashboard to manage your page."
        return Reply(embeds=[embed])

    async def account(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        account = context.account
        embed = base_embed("Atlas Account", f"You are connected as **@{account.handle}**.", Colors.SUCCESS)
        embed.add_field("Quick links", self._quick_links(account.handle))
        embed.add_field("Badges", format_badges(account.badges))
        if context.is_admin:
            embed.add_field("Admin", "You can use `/admin` and `/whois` with admin data.")
        return Reply(embeds=[embed])

    async def editor(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        reply = success_reply(
            "Open Atlas Editor",
            f"Manage your profile settings here:\n[Open Editor]({self.deps.site}/editor)",
        )
        reply.embeds[0].footer = f"Connected as @{context.account.handle}"
        return reply

    async def dashboard(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        reply = success_reply(
            "Open Atlas Dashboard",
            f"View analytics and trends here:\n[Open Dashboard]({self.deps.site}/dashboard)",
        )
        reply.embeds[0].footer = f"Connected as @{context.account.handle}"
        return reply

    async def profile(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        handle = normalize_handle(request.option("handle"))
        if not is_valid_handle(handle):
            return error_reply(
                "Invalid Handle",
                "Use a valid handle: 3-20 chars, lowercase letters, numbers, underscores.",
            )
        return success_reply(f"Profile @{handle}", f"[Open profile]({self.deps.config.profile_url(handle)})")

    async def whois(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        try:
            result = await self.deps.lookups.whois(request.option("handle") or "")
        except NotFoundError as e:
            return error_reply("Profile Not Found", str(e))
        except DatabaseError as e:
            logger.error(
                f"Whois lookup failed: {e}",
                extra={"handle": request.option("handle"), "user_id": request.actor.id},
            )
            return error_reply("Lookup Failed", "Could not load that Atlas profile right now.")

        return Reply(embeds=[whois_embed(self.deps.site, result, viewer_is_admin=context.is_admin)])

    async def admin(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        if not context.is_admin:
            return error_reply("Admin Access Required", "Your connected Atlas account is not an admin account.")

        reply = success_reply(
            "Atlas Admin Tools",
            f"[Open Admin Console]({self.deps.site}/admin)\n"
            "Use `/whois` for deep profile checks with moderation metadata.",
        )
        reply.embeds[0].add_field("Connected admin", f"@{context.account.handle}")
        return reply
