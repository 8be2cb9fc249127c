"""Premium commands: purchase prompt, pricing and staff entitlement toggles."""

from __future__ import annotations

from typing import Optional

from core.constants import Colors
from services.entitlement_service import EntitlementResult, EntitlementStatus
from services.lookup_service import ConnectionContext
from utils.formatting import format_badge_list
from utils.validators import format_payment_methods
from ..deps import BotDeps
from ..dispatcher import CommandOption, CommandSpec, Dispatcher
from ..embeds import plan_lines
from ..replies import Reply, error_reply, info_reply, success_reply
from ..requests import CommandRequest

HANDLE_OPTION = CommandOption("handle", "Atlas handle (with or without @)")


def entitlement_failure_reply(result: EntitlementResult) -> Optional[Reply]:
    """Reply for a non-ok result, or ``None`` when the call succeeded."""
    if result.status is EntitlementStatus.INVALID_HANDLE:
        return error_reply("Invalid Handle", "Provide a valid Atlas handle.")
    if result.status is EntitlementStatus.NOT_FOUND:
        return error_reply("Profile Not Found", f"No profile found for **@{result.handle}**.")
    if result.status is EntitlementStatus.SCHEMA_OUTDATED:
        return error_reply("Schema Update Required", result.message or "The database schema is out of date.")
    if result.status is EntitlementStatus.ERROR:
        return error_reply("Update Failed", "Could not update premium badge right now.")
    return None


def _with_badges(reply: Reply, badges) -> Reply:
    reply.embeds[0].add_field("Badges", format_badge_list(badges))
    return reply


class PremiumHandlers:
    def __init__(self, deps: BotDeps) -> None:
        self.deps = deps

    def setup(self, dispatcher: Dispatcher) -> None:
        roles = self.deps.premium_roles
        dispatcher.command(
            "premium",
            CommandSpec(self.premium, "Post premium ticket embed to the ticket channel", required_roles=roles),
        )
        dispatcher.command(
            "premiuminfo",
            CommandSpec(self.premium_info, "View premium pricing and accepted payment methods"),
        )
        dispatcher.command(
            "give-premium",
            CommandSpec(
                self.give_premium,
                "Grant premium badge to a handle (staff role required)",
                options=(HANDLE_OPTION,),
                required_roles=roles,
            ),
        )
        dispatcher.command(
            "remove-premium",
            CommandSpec(
                self.remove_premium,
                "Remove premium badge from a handle (staff role required)",
                options=(HANDLE_OPTION,),
                required_roles=roles,
            ),
        )
        dispatcher.command(
            "premium-status",
            CommandSpec(
                self.premium_status,
                "Check premium status for a handle (staff role required)",
                options=(HANDLE_OPTION,),
                required_roles=roles,
            ),
        )

    async def premium(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        if not await self.deps.tickets.post_purchase_prompt():
            return error_reply(
                "Premium Ticket Channel Error",
                "Could not send the premium embed to the ticket channel. Check bot permissions and channel access.",
            )
        return success_reply(
            "Premium Embed Posted",
            f"Posted to <#{self.deps.config.premium_ticket_channel_id}>. "
            "Click **Open Ticket** on that embed to open the modal.",
        )

    async def premium_info(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        return success_reply(
            "Atlas Pro Pricing",
            "\n".join([*plan_lines(), f"Accepted payments: **{format_payment_methods()}**"]),
        )

    async def give_premium(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        result = await self.deps.entitlements.set_entitlement(request.option("handle") or "", grant=True)
        failure = entitlement_failure_reply(result)
        if failure is not None:
            return failure

        self.deps.audit.emit("Premium Granted", f"{request.actor.tag} -> @{result.handle}")
        return _with_badges(
            success_reply(
                "Premium Granted" if result.changed else "Premium Already Active",
                f"@{result.handle} now has premium badge access.",
            ),
            result.badges,
        )

    async def remove_premium(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        result = await self.deps.entitlements.set_entitlement(request.option("handle") or "", grant=False)
        failure = entitlement_failure_reply(result)
        if failure is not None:
            return failure

        self.deps.audit.emit("Premium Removed", f"{request.actor.tag} -> @{result.handle}")
        return _with_badges(
            info_reply(
                "Premium Removed" if result.changed else "Premium Already Removed",
                f"@{result.handle} premium badge has been removed.",
                Colors.WARNING,
            ),
            result.badges,
        )

    async def premium_status(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        result = await self.deps.entitlements.get_status(request.option("handle") or "")
        if result.status is EntitlementStatus.ERROR:
            return error_reply("Lookup Failed", "Could not load premium status right now.")
        failure = entitlement_failure_reply(result)
        if failure is not None:
            return failure

        return _with_badges(
            info_reply(
                f"Premium Status: @{result.handle}",
                "Premium badge is active." if result.active else "Premium badge is not active.",
                Colors.SUCCESS if result.active else Colors.WARNING,
            ),
            result.badges,
        )
