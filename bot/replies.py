"""Platform-neutral message model for replies and channel posts.

Handlers and services build these plain dataclasses; ``bot.gateway`` is the
only place that turns them into discord.py objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence

from core.constants import Colors, DiscordLimits
from core.exceptions import AuthorizationError
from core.logger import get_logger
from utils.formatting import truncate

logger = get_logger(__name__)


class ButtonStyle(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    SUCCESS = "success"
    DANGER = "danger"
    LINK = "link"


@dataclass(frozen=True)
class EmbedField:
    name: str
    value: str
    inline: bool = False


@dataclass
class Embed:
    title: str
    description: str = ""
    color: int = Colors.BRAND
    fields: List[EmbedField] = field(default_factory=list)
    url: Optional[str] = None
    footer: Optional[str] = None
    thumbnail_url: Optional[str] = None

    def add_field(self, name: str, value: str, inline: bool = False) -> "Embed":
        if len(self.fields) >= DiscordLimits.EMBED_FIELDS:
            return self
        text = truncate(value, DiscordLimits.EMBED_FIELD_VALUE, empty="-")
        self.fields.append(EmbedField(name=name, value=text, inline=inline))
        return self

    def field_value(self, name: str) -> Optional[str]:
        for item in self.fields:
            if item.name == name:
                return item.value
        return None


@dataclass(frozen=True)
class Button:
    label: str
    custom_id: Optional[str] = None
    style: ButtonStyle = ButtonStyle.SECONDARY
    url: Optional[str] = None


@dataclass(frozen=True)
class TextField:
    custom_id: str
    label: str
    placeholder: str = ""
    required: bool = True
    long: bool = False
    max_length: int = 100


@dataclass(frozen=True)
class Modal:
    custom_id: str
    title: str
    fields: Sequence[TextField] = ()


@dataclass
class Message:
    """A public post to a channel."""

    content: Optional[str] = None
    embeds: List[Embed] = field(default_factory=list)
    buttons: List[Button] = field(default_factory=list)
    mention_user_ids: Sequence[str] = ()
    mention_role_ids: Sequence[str] = ()


@dataclass
class Reply:
    """The single response addressed to the invoking actor."""

    embeds: List[Embed] = field(default_factory=list)
    ephemeral: bool = True
    modal: Optional[Modal] = None
    buttons: List[Button] = field(default_factory=list)
    content: Optional[str] = None
    # Run once the response has been delivered, e.g. deleting the ticket channel.
    after: List[Callable[[], Awaitable[None]]] = field(default_factory=list)

    async def run_after(self) -> None:
        for action in self.after:
            try:
                await action()
            except Exception as e:
                logger.warning(f"Post-reply action failed: {e}")

    @property
    def title(self) -> Optional[str]:
        return self.embeds[0].title if self.embeds else None

    @property
    def description(self) -> str:
        return self.embeds[0].description if self.embeds else ""


def base_embed(title: str, description: str = "", color: int = Colors.BRAND) -> Embed:
    return Embed(
        title=title,
        description=truncate(description, DiscordLimits.EMBED_DESCRIPTION, empty=""),
        color=color,
    )


def info_reply(title: str, description: str, color: int = Colors.BRAND, buttons: Sequence[Button] = ()) -> Reply:
    return Reply(embeds=[base_embed(title, description, color)], buttons=list(buttons))


def success_reply(title: str, description: str) -> Reply:
    return info_reply(title, description, Colors.SUCCESS)


def warning_reply(title: str, description: str) -> Reply:
    return info_reply(title, description, Colors.WARNING)


def error_reply(title: str, description: str) -> Reply:
    return info_reply(title, description, Colors.ERROR)


def not_connected_reply(connect_url: str) -> Reply:
    embed = base_embed(
        "Connect Atlas To Discord",
        "This Discord account is not connected to Atlas yet.",
        Colors.WARNING,
    )
    embed.add_field("Connect now", f"[Connect your account]({connect_url})")
    embed.add_field("Then what?", "After connecting, run the command again to manage your profile from Discord.")
    embed.footer = "Atlas Discord Integration"
    return Reply(
        embeds=[embed],
        buttons=[Button(label="Connect Discord", style=ButtonStyle.LINK, url=connect_url)],
    )


def access_denied_reply(error: AuthorizationError) -> Reply:
    return error_reply("Access Denied", str(error))


def modal_reply(modal: Modal) -> Reply:
    return Reply(modal=modal)
