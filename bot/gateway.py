"""Gateway adapter: the only module that talks to discord.py channel, member
and presence APIs.

Services depend on the :class:`Gateway` protocol; :class:`DiscordGateway`
implements it over a connected ``discord.Client``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Sequence

import discord

from core.exceptions import GatewayError
from core.logger import get_logger
from services.presence import RawActivity, RawPresence
from .replies import Button, ButtonStyle, Embed, Message, Modal

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChannelInfo:
    id: str
    name: str
    parent_id: Optional[str] = None
    topic: Optional[str] = None
    is_text: bool = True


class Gateway(Protocol):
    @property
    def latency(self) -> float: ...

    async def send_message(self, channel_id: str, message: Message) -> None: ...

    async def fetch_member_role_ids(self, guild_id: str, user_id: str) -> Sequence[str]: ...

    async def fetch_channel(self, channel_id: str) -> Optional[ChannelInfo]: ...

    async def create_ticket_channel(
        self,
        guild_id: str,
        name: str,
        category_id: str,
        topic: str,
        staff_role_ids: Sequence[str],
        requester_id: str,
        reason: str,
    ) -> ChannelInfo: ...

    async def set_channel_topic(self, channel_id: str, topic: str) -> None: ...

    async def delete_channel(self, channel_id: str, reason: str) -> None: ...

    async def fetch_presence(self, guild_id: str, user_id: str) -> Optional[RawPresence]: ...


_BUTTON_STYLES = {
    ButtonStyle.PRIMARY: discord.ButtonStyle.primary,
    ButtonStyle.SECONDARY: discord.ButtonStyle.secondary,
    ButtonStyle.SUCCESS: discord.ButtonStyle.success,
    ButtonStyle.DANGER: discord.ButtonStyle.danger,
    ButtonStyle.LINK: discord.ButtonStyle.link,
}


def to_discord_embed(embed: Embed) -> discord.Embed:
    result = discord.Embed(
        title=embed.title,
        description=embed.description or None,
        color=embed.color,
        url=embed.url,
        timestamp=discord.utils.utcnow(),
    )
    for item in embed.fields:
        result.add_field(name=item.name, value=item.value, inline=item.inline)
    if embed.footer:
        result.set_footer(text=embed.footer)
    if embed.thumbnail_url:
        result.set_thumbnail(url=embed.thumbnail_url)
    return result


def build_view(buttons: Sequence[Button]) -> Optional[discord.ui.View]:
    """Build a component row; must be called with a running event loop."""
    if not buttons:
        return None
    view = discord.ui.View(timeout=None)
    for button in buttons:
        if button.url:
            item = discord.ui.Button(label=button.label, style=discord.ButtonStyle.link, url=button.url)
        else:
            item = discord.ui.Button(
                label=button.label,
                style=_BUTTON_STYLES[button.style],
                custom_id=button.custom_id,
            )
        view.add_item(item)
    return view


def build_modal(modal: Modal) -> discord.ui.Modal:
    result = discord.ui.Modal(title=modal.title, custom_id=modal.custom_id, timeout=None)
    for text_field in modal.fields:
        result.add_item(
            discord.ui.TextInput(
                label=text_field.label,
                custom_id=text_field.custom_id,
                placeholder=text_field.placeholder or None,
                required=text_field.required,
                max_length=text_field.max_length,
                style=discord.TextStyle.paragraph if text_field.long else discord.TextStyle.short,
            )
        )
    return result


def allowed_mentions(message: Message) -> discord.AllowedMentions:
    return discord.AllowedMentions(
        everyone=False,
        users=[discord.Object(id=int(user_id)) for user_id in message.mention_user_ids],
        roles=[discord.Object(id=int(role_id)) for role_id in message.mention_role_ids],
    )


def _activity_field(activity: Any, *names: str) -> Optional[str]:
    for name in names:
        value = getattr(activity, name, None)
        if isinstance(value, str) and value.strip():
            return value
    return None


def to_raw_activity(activity: Any) -> RawActivity:
    kind = getattr(activity, "type", None)
    return RawActivity(
        type=int(getattr(kind, "value", -1)),
        name=_activity_field(activity, "name"),
        details=_activity_field(activity, "details", "title"),
        state=_activity_field(activity, "state", "artist"),
    )


class DiscordGateway:
    """:class:`Gateway` over a discord.py client."""

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    @property
    def latency(self) -> float:
        return self.client.latency

    async def _guild(self, guild_id: str) -> discord.Guild:
        guild = self.client.get_guild(int(guild_id))
        if guild is not None:
            return guild
        try:
            return await self.client.fetch_guild(int(guild_id))
        except discord.HTTPException as e:
            raise GatewayError(f"Guild {guild_id} is unavailable: {e}") from e

    async def _channel(self, channel_id: str) -> Optional[discord.abc.GuildChannel]:
        channel = self.client.get_channel(int(channel_id))
        if channel is not None:
            return channel
        try:
            return await self.client.fetch_channel(int(channel_id))
        except discord.NotFound:
            return None
        except discord.HTTPException as e:
            raise GatewayError(f"Channel {channel_id} fetch failed: {e}") from e

    async def send_message(self, channel_id: str, message: Message) -> None:
        channel = await self._channel(channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            raise GatewayError(f"Channel {channel_id} is not a text channel")

        kwargs: Dict[str, Any] = {
            "content": message.content,
            "embeds": [to_discord_embed(embed) for embed in message.embeds],
            "allowed_mentions": allowed_mentions(message),
        }
        view = build_view(message.buttons)
        if view is not None:
            kwargs["view"] = view

        try:
            await channel.send(**kwargs)
        except discord.HTTPException as e:
            raise GatewayError(f"Send to {channel_id} failed: {e}") from e

    async def fetch_member_role_ids(self, guild_id: str, user_id: str) -> Sequence[str]:
        # Always hits the API: role changes must apply on the next invocation.
        guild = await self._guild(guild_id)
        try:
            member = await guild.fetch_member(int(user_id))
        except discord.NotFound:
            return ()
        except discord.HTTPException as e:
            raise GatewayError(f"Member {user_id} fetch failed: {e}") from e
        return tuple(str(role.id) for role in member.roles)

    async def fetch_channel(self, channel_id: str) -> Optional[ChannelInfo]:
        channel = await self._channel(channel_id)
        if channel is None:
            return None
        return ChannelInfo(
            id=str(channel.id),
            name=getattr(channel, "name", "") or "",
            parent_id=str(channel.category_id) if getattr(channel, "category_id", None) else None,
            topic=getattr(channel, "topic", None),
            is_text=isinstance(channel, discord.TextChannel),
        )

    async def create_ticket_channel(
        self,
        guild_id: str,
        name: str,
        category_id: str,
        topic: str,
        staff_role_ids: Sequence[str],
        requester_id: str,
        reason: str,
    ) -> ChannelInfo:
        guild = await self._guild(guild_id)
        category = guild.get_channel(int(category_id))
        if not isinstance(category, discord.CategoryChannel):
            raise GatewayError(f"Ticket category {category_id} is missing")

        overwrites: Dict[Any, discord.PermissionOverwrite] = {
            guild.default_role: discord.PermissionOverwrite(view_channel=False),
        }
        member_access = discord.PermissionOverwrite(
            view_channel=True,
            send_messages=True,
            read_message_history=True,
            attach_files=True,
            embed_links=True,
        )
        if guild.me is not None:
            overwrites[guild.me] = discord.PermissionOverwrite(
                view_channel=True,
                send_messages=True,
                read_message_history=True,
                manage_channels=True,
                manage_messages=True,
                embed_links=True,
                attach_files=True,
            )
        for role_id in dict.fromkeys(staff_role_ids):
            role = guild.get_role(int(role_id))
            if role is not None:
                overwrites[role] = member_access
        overwrites[guild.get_member(int(requester_id)) or discord.Object(id=int(requester_id))] = member_access

        try:
            channel = await guild.create_text_channel(
                name=name,
                category=category,
                topic=topic,
                overwrites=overwrites,
                reason=reason,
            )
        except discord.HTTPException as e:
            raise GatewayError(f"Ticket channel create failed: {e}") from e

        return ChannelInfo(id=str(channel.id), name=channel.name, parent_id=category_id, topic=topic)

    async def set_channel_topic(self, channel_id: str, topic: str) -> None:
        channel = await self._channel(channel_id)
        if not isinstance(channel, discord.TextChannel):
            raise GatewayError(f"Channel {channel_id} is not a text channel")
        try:
            await channel.edit(topic=topic)
        except discord.HTTPException as e:
            raise GatewayError(f"Topic update for {channel_id} failed: {e}") from e

    async def delete_channel(self, channel_id: str, reason: str) -> None:
        channel = await self._channel(channel_id)
        if channel is None:
            return
        try:
            await channel.delete(reason=reason)
        except discord.HTTPException as e:
            raise GatewayError(f"Channel delete for {channel_id} failed: {e}") from e

    async def fetch_presence(self, guild_id: str, user_id: str) -> Optional[RawPresence]:
        guild = await self._guild(guild_id)
        uid = int(user_id)

        # Only cached members carry presence; a fetched member is always offline.
        member = guild.get_member(uid)
        user: Optional[discord.abc.User] = member
        if member is None:
            try:
                user = await guild.fetch_member(uid)
            except discord.HTTPException:
                try:
                    user = await self.client.fetch_user(uid)
                except discord.HTTPException:
                    user = None

        if user is None:
            return None

        activities = [to_raw_activity(activity) for activity in (member.activities if member else ())]
        return RawPresence(
            status=str(member.status) if member else None,
            activities=activities,
            username=user.name,
            global_name=user.global_name,
            avatar_url=user.display_avatar.with_format("png").with_size(128).url,
        )
