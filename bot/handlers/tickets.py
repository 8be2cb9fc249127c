"""Premium ticket commands, buttons and the purchase modal."""

from __future__ import annotations

from typing import Optional

from core.constants import CustomIds, TicketDefaults
from services.lookup_service import ConnectionContext
from services.tickets import ClaimOutcome, CloseOutcome, PurchaseIntent
from ..components import premium_modal
from ..deps import BotDeps
from ..dispatcher import CommandOption, CommandSpec, Dispatcher
from ..replies import Reply, error_reply, modal_reply, success_reply, warning_reply
from ..requests import Actor, ButtonRequest, CommandRequest, ModalRequest, Origin


class TicketHandlers:
    def __init__(self, deps: BotDeps) -> None:
        self.deps = deps

    def setup(self, dispatcher: Dispatcher) -> None:
        # Role checks happen inside the lifecycle manager, after the channel check.
        dispatcher.command(
            "claim-ticket",
            CommandSpec(self.claim_command, "Claim the current premium ticket channel"),
        )
        dispatcher.command(
            "close-ticket",
            CommandSpec(
                self.close_command,
                "Close the current premium ticket channel",
                options=(CommandOption("reason", "Optional reason for closing the ticket", required=False),),
            ),
        )
        dispatcher.button(CustomIds.OPEN_TICKET_BUTTON, self.open_ticket_button)
        dispatcher.button(CustomIds.CLAIM_TICKET_BUTTON, self.claim_button)
        dispatcher.button(CustomIds.CLOSE_TICKET_BUTTON, self.close_button)
        dispatcher.modal(CustomIds.PREMIUM_MODAL, self.purchase_submitted)

    # Commands

    async def claim_command(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        return await self._claim(request.actor, request.origin)

    async def close_command(self, request: CommandRequest, context: Optional[ConnectionContext]) -> Reply:
        return await self._close(request.actor, request.origin, request.option("reason"))

    # Buttons

    async def open_ticket_button(self, request: ButtonRequest) -> Reply:
        return modal_reply(premium_modal())

    async def claim_button(self, request: ButtonRequest) -> Reply:
        return await self._claim(request.actor, request.origin)

    async def close_button(self, request: ButtonRequest) -> Reply:
        return await self._close(request.actor, request.origin, TicketDefaults.BUTTON_CLOSE_REASON)

    # Modal

    async def purchase_submitted(self, request: ModalRequest) -> Reply:
        intent = PurchaseIntent.from_fields(request.fields)
        result = await self.deps.tickets.open_ticket(
            guild_id=request.origin.guild_id or self.deps.config.guild_id,
            requester_id=request.actor.id,
            requester_name=request.actor.username,
            requester_tag=request.actor.tag,
            intent=intent,
        )
        if not result.created:
            return error_reply(
                "Ticket Create Failed",
                "Could not create your premium ticket channel right now. Please try again or contact staff.",
            )
        return success_reply("Ticket Submitted", f"Your premium ticket is ready: <#{result.channel.id}>")

    # Shared

    async def _claim(self, actor: Actor, origin: Origin) -> Reply:
        result = await self.deps.tickets.claim(origin.guild_id or "", origin.channel_id, actor.id)

        if result.outcome is ClaimOutcome.WRONG_CHANNEL:
            return error_reply("Invalid Channel", "Claim Ticket works only in premium ticket channels.")
        if result.outcome is ClaimOutcome.ALREADY_CLAIMED:
            return warning_reply("Already Claimed", f"This ticket is already claimed by <@{result.claimed_by}>.")
        if result.outcome is ClaimOutcome.ALREADY_CLAIMED_BY_YOU:
            return warning_reply("Already Claimed", "You already claimed this ticket.")
        if result.outcome is ClaimOutcome.FAILED:
            return error_reply("Claim Failed", "Could not update the ticket claim right now. Please try again.")
        return success_reply("Claimed", f"You claimed <#{result.channel_id}>.")

    async def _close(self, actor: Actor, origin: Origin, reason: Optional[str]) -> Reply:
        tickets = self.deps.tickets
        result = await tickets.close(origin.guild_id or "", origin.channel_id, actor.id, reason)

        if result.outcome is CloseOutcome.WRONG_CHANNEL:
            return error_reply("Invalid Channel", "Close Ticket works only in premium ticket channels.")

        reply = success_reply("Ticket Closed", f"Closing <#{result.channel_id}> now.")

        async def delete_channel() -> None:
            await tickets.delete_ticket_channel(result, actor.tag)

        reply.after.append(delete_channel)
        return reply
