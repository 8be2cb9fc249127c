"""Embed builders shared by handlers, tickets and the handle feed."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from core.constants import Colors, PremiumPlan, TicketDefaults
from services.lookup_service import HandleLookup, HandleLookupStatus, WhoisResult
from utils.formatting import format_badges, format_date, truncate
from utils.validators import format_payment_methods, is_discord_user_id
from .replies import Embed, base_embed

if TYPE_CHECKING:
    from database.repositories import NewAccount


def _enabled(flag: bool) -> str:
    return "Enabled" if flag else "Disabled"


def _visibility(is_public: bool) -> str:
    return "Public" if is_public else "Private"


def plan_lines() -> list:
    return [
        f"Plan: **{PremiumPlan.NAME}**",
        f"Price: **${PremiumPlan.PRICE_USD} one-time**",
    ]


def purchase_prompt_embed() -> Embed:
    return base_embed(
        PremiumPlan.NAME,
        "\n".join([
            *plan_lines(),
            f"Accepted: **{format_payment_methods()}**",
            "Click **Open Ticket** to submit purchase details to staff.",
        ]),
        Colors.SUCCESS,
    )


def purchase_summary_embed(
    requester_tag: str,
    requester_id: str,
    payment_method: str,
    payment_tag: str,
    notes: Optional[str],
    connected_handle: Optional[str],
) -> Embed:
    embed = base_embed(
        "Premium Purchase Ticket",
        f"{PremiumPlan.NAME} purchase request submitted.",
        Colors.SUCCESS,
    )
    embed.add_field("Buyer", f"{requester_tag} ({requester_id})")
    embed.add_field("Plan", f"{PremiumPlan.NAME} - ${PremiumPlan.PRICE_USD} lifetime")
    embed.add_field("Payment Method", payment_method.upper(), inline=True)
    embed.add_field("Payment Username/Tag", truncate(payment_tag, TicketDefaults.PAYMENT_TAG_DISPLAY), inline=True)
    embed.add_field("Connected Atlas Account", f"@{connected_handle}" if connected_handle else "Not connected")
    embed.add_field("Notes", truncate(notes, TicketDefaults.NOTES_DISPLAY, empty="None"))
    embed.footer = f"Accepted payments: {format_payment_methods()}"
    return embed


def handle_lookup_embed(site_url: str, lookup: Optional[HandleLookup]) -> Optional[Embed]:
    """One of four renderings, or ``None`` when no handle was declared."""
    if lookup is None or not lookup.raw:
        return None

    if lookup.status is HandleLookupStatus.INVALID_FORMAT:
        embed = base_embed(
            "Handle Lookup",
            "Entered handle format is invalid. Expected 3-20 lowercase letters, numbers, or underscores.",
            Colors.WARNING,
        )
        embed.add_field("Entered", lookup.raw)
        embed.add_field("Result", "Lookup skipped due to invalid format.")
        return embed

    if lookup.status is HandleLookupStatus.NOT_FOUND:
        embed = base_embed(
            "Handle Lookup",
            f"No Atlas profile found for **@{lookup.handle}**.",
            Colors.WARNING,
        )
        embed.add_field("Entered", f"@{lookup.handle}")
        return embed

    if lookup.status is HandleLookupStatus.LOOKUP_FAILED:
        embed = base_embed(
            "Handle Lookup",
            f"Could not verify **@{lookup.handle}** right now.",
            Colors.ERROR,
        )
        embed.add_field("Entered", f"@{lookup.handle}")
        return embed

    account = lookup.account
    embed = base_embed(
        "Handle Profile Summary",
        f"[Open @{account.handle}]({site_url}/@{account.handle})\nNon-admin profile summary.",
        Colors.SUCCESS,
    )
    embed.add_field("Display Name", (account.display_name or "").strip() or "Not set", inline=True)
    embed.add_field("Visibility", _visibility(account.is_public), inline=True)
    embed.add_field("Comments", _enabled(account.comments_enabled), inline=True)
    embed.add_field("Badges", format_badges(account.badges))
    embed.add_field("Bio", truncate(account.bio, TicketDefaults.BIO_DISPLAY))
    return embed


def handle_created_embed(site_url: str, account: "NewAccount") -> Embed:
    embed = base_embed(
        "New Handle Created",
        f"A new Atlas handle was created: **@{account.handle}**",
        Colors.SUCCESS,
    )
    embed.add_field("Handle", f"@{account.handle}", inline=True)
    embed.add_field("Display Name", (account.display_name or "").strip() or "Not set", inline=True)
    embed.add_field("Profile", f"{site_url}/@{account.handle}")
    embed.add_field("User ID", account.id)
    embed.add_field("Created", format_date(account.created_at), inline=True)
    return embed


def whois_embed(site_url: str, result: WhoisResult, viewer_is_admin: bool) -> Embed:
    account = result.account
    stats = result.stats
    heading = f"**{account.display_name}**\n" if account.display_name else ""
    embed = base_embed(
        f"Whois @{account.handle}",
        f"{heading}[Open profile]({site_url}/@{account.handle})",
    )
    embed.add_field("Badges", format_badges(account.badges), inline=True)
    embed.add_field("Visibility", _visibility(account.is_public), inline=True)
    embed.add_field("Comments", _enabled(account.comments_enabled), inline=True)
    embed.add_field(
        "Stats",
        "\n".join([
            f"Links: {stats.links}",
            f"Music: {stats.music_tracks}",
            f"Widgets: {stats.widgets}",
            f"Comments: {stats.comments}",
            f"Views (30d): {stats.views_30d}",
        ]),
        inline=True,
    )
    embed.add_field(
        "Design",
        "\n".join([
            f"Theme: {account.theme}",
            f"Template: {account.template}",
            f"Layout: {account.layout}",
            f"Profile effect: {account.profile_effect}",
            f"Background effect: {account.background_effect}",
        ]),
        inline=True,
    )
    embed.add_field("Bio", truncate(account.bio, TicketDefaults.BIO_DISPLAY))

    if viewer_is_admin:
        embed.color = Colors.SUCCESS
        embed.add_field(
            "Admin Data",
            "\n".join([
                f"User ID: {account.id}",
                f"Banned: {'Yes' if account.is_banned else 'No'}",
                f"Discord Linked: {'Yes' if is_discord_user_id(account.discord_user_id) else 'No'}",
                f"Discord Presence: {_enabled(account.discord_presence_enabled)}",
                f"Created: {format_date(account.created_at)}",
                f"Updated: {format_date(account.updated_at)}",
            ]),
        )
        embed.footer = "Admin view: includes moderation metadata."
    else:
        embed.footer = "Connect an admin Atlas account for moderation-level whois details."
    return embed
