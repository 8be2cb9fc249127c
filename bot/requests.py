"""Inbound interaction model.

Raw gateway interactions are parsed once, at the boundary, into one of three
frozen request types. Anything that does not fit raises
:class:`ValidationError` so the caller can answer with a private error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Union

import discord

from core.exceptions import ValidationError


@dataclass(frozen=True)
class Actor:
    id: str
    username: str
    tag: str


@dataclass(frozen=True)
class Origin:
    guild_id: Optional[str] = None
    guild_name: Optional[str] = None
    channel_id: Optional[str] = None

    @property
    def guild_label(self) -> str:
        return self.guild_name or "DM/Unknown"

    @property
    def channel_label(self) -> str:
        return f"<#{self.channel_id}>" if self.channel_id else "Unknown"


@dataclass(frozen=True)
class CommandRequest:
    actor: Actor
    origin: Origin
    name: str
    options: Mapping[str, str] = field(default_factory=dict)

    kind = "command"

    def option(self, name: str) -> Optional[str]:
        value = self.options.get(name)
        return value if value else None


@dataclass(frozen=True)
class ButtonRequest:
    actor: Actor
    origin: Origin
    custom_id: str

    kind = "button"

    @property
    def name(self) -> str:
        return self.custom_id


@dataclass(frozen=True)
class ModalRequest:
    actor: Actor
    origin: Origin
    custom_id: str
    fields: Mapping[str, str] = field(default_factory=dict)

    kind = "modal"

    @property
    def name(self) -> str:
        return self.custom_id


InboundRequest = Union[CommandRequest, ButtonRequest, ModalRequest]


def _snowflake(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _actor(interaction: Any) -> Actor:
    user = getattr(interaction, "user", None)
    if user is None or getattr(user, "id", None) is None:
        raise ValidationError("Interaction has no invoking user.")
    username = getattr(user, "name", None) or str(user.id)
    return Actor(id=str(user.id), username=username, tag=str(user))


def _origin(interaction: Any) -> Origin:
    guild = getattr(interaction, "guild", None)
    return Origin(
        guild_id=_snowflake(getattr(interaction, "guild_id", None)),
        guild_name=getattr(guild, "name", None),
        channel_id=_snowflake(getattr(interaction, "channel_id", None)),
    )


def _command_options(raw_options: Iterable[Mapping[str, Any]]) -> Dict[str, str]:
    options: Dict[str, str] = {}
    for option in raw_options or ():
        name = option.get("name")
        if not isinstance(name, str):
            raise ValidationError("Command option without a name.")
        value = option.get("value")
        if value is not None:
            options[name] = str(value)
    return options


def _modal_fields(rows: Iterable[Mapping[str, Any]]) -> Dict[str, str]:
    fields: Dict[str, str] = {}
    for row in rows or ():
        for component in row.get("components", ()):
            custom_id = component.get("custom_id")
            if isinstance(custom_id, str):
                fields[custom_id] = str(component.get("value") or "")
    return fields


def parse_interaction(interaction: Any) -> InboundRequest:
    """Turn a ``discord.Interaction`` into a request object."""
    data = getattr(interaction, "data", None)
    if not isinstance(data, Mapping):
        raise ValidationError("Interaction payload is missing.")

    kind = getattr(interaction, "type", None)
    actor = _actor(interaction)
    origin = _origin(interaction)

    if kind == discord.InteractionType.application_command:
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ValidationError("Command name is missing.")
        return CommandRequest(actor=actor, origin=origin, name=name, options=_command_options(data.get("options")))

    if kind == discord.InteractionType.component:
        custom_id = data.get("custom_id")
        if not isinstance(custom_id, str) or not custom_id:
            raise ValidationError("Button id is missing.")
        return ButtonRequest(actor=actor, origin=origin, custom_id=custom_id)

    if kind == discord.InteractionType.modal_submit:
        custom_id = data.get("custom_id")
        if not isinstance(custom_id, str) or not custom_id:
            raise ValidationError("Modal id is missing.")
        return ModalRequest(
            actor=actor,
            origin=origin,
            custom_id=custom_id,
            fields=_modal_fields(data.get("components")),
        )

    raise ValidationError(f"Unsupported interaction type: {kind}")
