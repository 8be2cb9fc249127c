"""Premium purchase ticket lifecycle: open -> claimed -> closed.

Claim ownership lives in the channel topic (see :mod:`services.ticket_topic`).
Claim and close both check the channel before the caller's roles, so a
command run in the wrong place never reaches the role lookup.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Mapping, Optional

from bot.components import open_ticket_buttons, ticket_action_buttons
from bot.embeds import handle_lookup_embed, purchase_prompt_embed, purchase_summary_embed
from bot.replies import Message, base_embed
from config import Config
from core.constants import Colors, CustomIds, DiscordLimits, PaymentMethod, TicketDefaults, TicketState
from core.exceptions import GatewayError, ValidationError
from core.logger import get_logger
from services.access_control import AccessControl
from services.audit_service import AuditLogger
from services.lookup_service import HandleLookup, LookupService
from services.ticket_topic import TicketTopic, build_topic, write_claimed_by
from utils.formatting import slugify, to_base36, truncate
from utils.validators import format_payment_methods, normalize_payment_method

if TYPE_CHECKING:
    from bot.gateway import ChannelInfo, Gateway

logger = get_logger(__name__)


@dataclass(frozen=True)
class PurchaseIntent:
    payment_method: PaymentMethod
    payment_tag: str
    handle: str = ""
    notes: str = ""

    @classmethod
    def from_fields(cls, fields: Mapping[str, str]) -> "PurchaseIntent":
        """Validate modal fields; raises :class:`ValidationError` before any side effect."""
        method = normalize_payment_method(fields.get(CustomIds.PAYMENT_METHOD_FIELD, ""))
        if method is None:
            raise ValidationError(
                f"Only these payment methods are accepted: **{format_payment_methods()}**.",
                title="Invalid Payment Method",
            )

        payment_tag = (fields.get(CustomIds.PAYMENT_TAG_FIELD) or "").strip()
        if not payment_tag:
            raise ValidationError("Please provide your payment username/tag.", title="Missing Payment Tag")

        return cls(
            payment_method=method,
            payment_tag=payment_tag,
            handle=(fields.get(CustomIds.HANDLE_FIELD) or "").strip(),
            notes=(fields.get(CustomIds.NOTES_FIELD) or "").strip(),
        )


class ClaimOutcome(str, Enum):
    CLAIMED = "claimed"
    WRONG_CHANNEL = "wrong_channel"
    ALREADY_CLAIMED = "already_claimed"
    ALREADY_CLAIMED_BY_YOU = "already_claimed_by_you"
    FAILED = "failed"


class CloseOutcome(str, Enum):
    CLOSED = "closed"
    WRONG_CHANNEL = "wrong_channel"


@dataclass(frozen=True)
class OpenResult:
    channel: Optional["ChannelInfo"]
    handle_label: str
    lookup: Optional[HandleLookup] = None
    connected_handle: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.channel is not None


@dataclass(frozen=True)
class ClaimResult:
    outcome: ClaimOutcome
    channel_id: Optional[str] = None
    claimed_by: Optional[str] = None


@dataclass(frozen=True)
class CloseResult:
    outcome: CloseOutcome
    channel_id: Optional[str] = None
    reason: str = TicketDefaults.DEFAULT_CLOSE_REASON


def ticket_channel_name(username: str, now_ms: Optional[int] = None) -> str:
    """``premium-<slug>-<4 char base36 time suffix>``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = to_base36(now_ms)[-4:]
    name = f"{TicketDefaults.CHANNEL_PREFIX}-{slugify(username, max_length=20)}-{suffix}"
    return name[: DiscordLimits.CHANNEL_NAME]


class TicketLifecycleManager:
    def __init__(
        self,
        config: Config,
        gateway: "Gateway",
        access: AccessControl,
        lookups: LookupService,
        audit: AuditLogger,
    ) -> None:
        self.config = config
        self.gateway = gateway
        self.access = access
        self.lookups = lookups
        self.audit = audit

    @property
    def staff_role_ids(self):
        return self.config.premium_ticket_role_ids

    async def resolve_ticket_channel(self, channel_id: Optional[str]) -> Optional["ChannelInfo"]:
        """Return the channel when it is a text channel under the ticket category."""
        if not channel_id:
            return None
        try:
            channel = await self.gateway.fetch_channel(channel_id)
        except GatewayError as e:
            logger.warning(f"Ticket channel lookup failed for {channel_id}: {e}", extra={"channel_id": channel_id})
            return None
        if channel is None or not channel.is_text:
            return None
        if channel.parent_id != self.config.premium_ticket_category_id:
            return None
        return channel

    async def post_purchase_prompt(self) -> bool:
        message = Message(embeds=[purchase_prompt_embed()], buttons=open_ticket_buttons())
        try:
            await self.gateway.send_message(self.config.premium_ticket_channel_id, message)
        except GatewayError as e:
            logger.error(
                f"Premium prompt send failed: {e}",
                extra={"channel_id": self.config.premium_ticket_channel_id},
            )
            return False
        return True

    async def open_ticket(
        self,
        guild_id: str,
        requester_id: str,
        requester_name: str,
        requester_tag: str,
        intent: PurchaseIntent,
    ) -> OpenResult:
        lookup = await self.lookups.lookup_ticket_handle(intent.handle) if intent.handle else None
        handle_label = lookup.label if lookup else "Not provided"
        context = await self.lookups.connection_context(requester_id)
        connected_handle = context.account.handle if context.account else None

        try:
            channel = await self.gateway.create_ticket_channel(
                guild_id=guild_id,
                name=ticket_channel_name(requester_name),
                category_id=self.config.premium_ticket_category_id,
                topic=build_topic(requester_id, handle_label),
                staff_role_ids=self.staff_role_ids,
                requester_id=requester_id,
                reason=f"Premium ticket for {requester_tag}",
            )
        except GatewayError as e:
            logger.error(
                f"Premium ticket channel create failed: {e}",
                extra={"guild_id": guild_id, "category_id": self.config.premium_ticket_category_id},
            )
            return OpenResult(channel=None, handle_label=handle_label, lookup=lookup, connected_handle=connected_handle)

        embeds = [
            purchase_summary_embed(
                requester_tag=requester_tag,
                requester_id=requester_id,
                payment_method=intent.payment_method.value,
                payment_tag=intent.payment_tag,
                notes=intent.notes,
                connected_handle=connected_handle,
            )
        ]
        handle_embed = handle_lookup_embed(self.config.site_url, lookup)
        if handle_embed is not None:
            embeds.append(handle_embed)

        role_mentions = " ".join(f"<@&{role_id}>" for role_id in self.staff_role_ids)
        opening = Message(
            content=f"{role_mentions} <@{requester_id}>".strip(),
            embeds=embeds,
            buttons=ticket_action_buttons(),
            mention_user_ids=(requester_id,),
            mention_role_ids=tuple(self.staff_role_ids),
        )
        try:
            await self.gateway.send_message(channel.id, opening)
        except GatewayError as e:
            logger.error(f"Ticket opening message failed: {e}", extra={"channel_id": channel.id})

        self.audit.emit(
            "Premium Ticket Created",
            f"{requester_tag} submitted a premium purchase request.",
            [
                ("Payment", intent.payment_method.value.upper()),
                ("Handle", handle_label),
                ("Connected", f"@{connected_handle}" if connected_handle else "No"),
                ("Ticket Channel", f"<#{channel.id}>"),
            ],
        )
        logger.info(
            f"Premium ticket opened: {channel.name}",
            extra={"channel_id": channel.id, "requester_id": requester_id},
        )
        return OpenResult(channel=channel, handle_label=handle_label, lookup=lookup, connected_handle=connected_handle)

    async def claim(self, guild_id: str, channel_id: Optional[str], actor_id: str) -> ClaimResult:
        channel = await self.resolve_ticket_channel(channel_id)
        if channel is None:
            return ClaimResult(outcome=ClaimOutcome.WRONG_CHANNEL)

        await self.access.require_any_role(guild_id, actor_id, self.staff_role_ids, "Claim Ticket")

        topic = TicketTopic.parse(channel.topic)
        if topic.state is TicketState.CLAIMED:
            outcome = ClaimOutcome.ALREADY_CLAIMED_BY_YOU if topic.claimed_by == actor_id else ClaimOutcome.ALREADY_CLAIMED
            return ClaimResult(outcome=outcome, channel_id=channel.id, claimed_by=topic.claimed_by)

        try:
            await self.gateway.set_channel_topic(channel.id, write_claimed_by(channel.topic, actor_id))
        except GatewayError as e:
            logger.error(f"Ticket claim topic update failed: {e}", extra={"channel_id": channel.id})
            return ClaimResult(outcome=ClaimOutcome.FAILED, channel_id=channel.id)

        announcement = Message(
            embeds=[base_embed("Ticket Claimed", f"<@{actor_id}> claimed this premium ticket.", Colors.SUCCESS)],
        )
        try:
            await self.gateway.send_message(channel.id, announcement)
        except GatewayError as e:
            logger.warning(f"Ticket claim announcement failed: {e}", extra={"channel_id": channel.id})

        self.audit.emit("Ticket Claimed", f"<@{actor_id}> claimed <#{channel.id}>")
        return ClaimResult(outcome=ClaimOutcome.CLAIMED, channel_id=channel.id, claimed_by=actor_id)

    async def close(
        self,
        guild_id: str,
        channel_id: Optional[str],
        actor_id: str,
        reason: Optional[str] = None,
    ) -> CloseResult:
        """Announce and audit the close; the channel is removed by :meth:`delete_ticket_channel`."""
        channel = await self.resolve_ticket_channel(channel_id)
        if channel is None:
            return CloseResult(outcome=CloseOutcome.WRONG_CHANNEL)

        await self.access.require_any_role(guild_id, actor_id, self.staff_role_ids, "Close Ticket")

        close_reason = (reason or "").strip() or TicketDefaults.DEFAULT_CLOSE_REASON
        shown = truncate(close_reason, TicketDefaults.CLOSE_REASON_DISPLAY)
        announcement = Message(
            embeds=[base_embed("Ticket Closed", f"Closed by <@{actor_id}>.\nReason: {shown}", Colors.WARNING)],
        )
        try:
            await self.gateway.send_message(channel.id, announcement)
        except GatewayError as e:
            logger.warning(f"Ticket close announcement failed: {e}", extra={"channel_id": channel.id})

        self.audit.emit(
            "Ticket Closed",
            f"<@{actor_id}> closed <#{channel.id}>",
            [("Reason", close_reason)],
        )
        return CloseResult(outcome=CloseOutcome.CLOSED, channel_id=channel.id, reason=close_reason)

    async def delete_ticket_channel(self, result: CloseResult, actor_tag: str) -> bool:
        """Best-effort delete; failures are logged and swallowed."""
        if result.outcome is not CloseOutcome.CLOSED or not result.channel_id:
            return False
        try:
            await self.gateway.delete_channel(result.channel_id, f"Closed by {actor_tag}: {result.reason[:80]}")
        except Exception as e:
            logger.warning(f"Ticket channel delete failed: {e}", extra={"channel_id": result.channel_id})
            return False
        return True
