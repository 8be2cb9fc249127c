"""Interaction dispatcher.

Lookup tables map command names and component custom ids to handlers. Every
inbound request produces exactly one :class:`Reply`; handler exceptions are
caught here, logged, audited and turned into a generic error reply.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from core.exceptions import AuthorizationError, ValidationError, error_message
from core.logger import get_logger
from services.access_control import AccessControl
from services.audit_service import AuditLogger
from services.lookup_service import ConnectionContext, LookupService
from utils.formatting import truncate
from utils.performance import monitor
from .replies import (
    Reply,
    access_denied_reply,
    error_reply,
    not_connected_reply,
    warning_reply,
)
from .requests import ButtonRequest, CommandRequest, InboundRequest, ModalRequest

logger = get_logger(__name__)

CommandHandler = Callable[[CommandRequest, Optional[ConnectionContext]], Awaitable[Reply]]
ButtonHandler = Callable[[ButtonRequest], Awaitable[Reply]]
ModalHandler = Callable[[ModalRequest], Awaitable[Reply]]

# Discord application command option type for strings
STRING_OPTION = 3


@dataclass(frozen=True)
class CommandOption:
    name: str
    description: str
    required: bool = True

    def to_payload(self) -> Dict[str, Any]:
        return {
            "type": STRING_OPTION,
            "name": self.name,
            "description": self.description,
            "required": self.required,
        }


@dataclass(frozen=True)
class CommandSpec:
    handler: CommandHandler
    description: str
    options: Tuple[CommandOption, ...] = ()
    required_roles: Tuple[str, ...] = ()
    requires_account: bool = False

    def to_payload(self, name: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": name, "description": self.description, "type": 1}
        if self.options:
            payload["options"] = [option.to_payload() for option in self.options]
        return payload


class Dispatcher:
    def __init__(
        self,
        lookups: LookupService,
        access: AccessControl,
        audit: AuditLogger,
        connect_url: str,
    ) -> None:
        self.lookups = lookups
        self.access = access
        self.audit = audit
        self.connect_url = connect_url
        self.commands: Dict[str, CommandSpec] = {}
        self.buttons: Dict[str, ButtonHandler] = {}
        self.modals: Dict[str, ModalHandler] = {}

    # Registration

    def command(self, name: str, spec: CommandSpec) -> None:
        if name in self.commands:
            raise ValueError(f"Command /{name} is already registered")
        self.commands[name] = spec

    def button(self, custom_id: str, handler: ButtonHandler) -> None:
        if custom_id in self.buttons:
            raise ValueError(f"Button {custom_id} is already registered")
        self.buttons[custom_id] = handler

    def modal(self, custom_id: str, handler: ModalHandler) -> None:
        if custom_id in self.modals:
            raise ValueError(f"Modal {custom_id} is already registered")
        self.modals[custom_id] = handler

    def command_payload(self) -> List[Dict[str, Any]]:
        """Slash-command registration payload, in registration order."""
        return [spec.to_payload(name) for name, spec in self.commands.items()]

    # Dispatch

    async def dispatch(self, request: InboundRequest) -> Reply:
        outcome = "ok"
        with monitor.track_interaction(request.kind):
            try:
                reply = await self._route(request)
            except AuthorizationError as e:
                outcome = "denied"
                reply = access_denied_reply(e)
            except ValidationError as e:
                outcome = "invalid"
                reply = error_reply(e.title, str(e))
            except Exception as e:
                outcome = "error"
                reply = self._handler_failed(request, e)
        monitor.record_interaction(request.kind, request.name, outcome)
        return reply

    async def _route(self, request: InboundRequest) -> Reply:
        if isinstance(request, CommandRequest):
            return await self._dispatch_command(request)
        if isinstance(request, ButtonRequest):
            handler = self.buttons.get(request.custom_id)
            if handler is None:
                return warning_reply("Unsupported Action", "This button is no longer supported.")
            return await handler(request)
        if isinstance(request, ModalRequest):
            handler = self.modals.get(request.custom_id)
            if handler is None:
                return warning_reply(
                    "Unsupported Modal",
                    "This modal is no longer supported. Please run the command again.",
                )
            return await handler(request)
        raise ValidationError(f"Unsupported request: {type(request).__name__}")

    async def _dispatch_command(self, request: CommandRequest) -> Reply:
        actor = request.actor
        self.audit.emit(
            "Command Received",
            f"/{request.name}",
            [
                ("User", f"{actor.tag} ({actor.id})"),
                ("Guild", request.origin.guild_label),
                ("Channel", request.origin.channel_label),
            ],
        )

        spec = self.commands.get(request.name)
        if spec is None:
            context = await self.lookups.connection_context(actor.id)
            if not context.connected:
                return not_connected_reply(self.connect_url)
            return warning_reply("Unknown Command", f"`/{request.name}` is not a supported command.")

        if spec.required_roles:
            await self.access.require_any_role(
                request.origin.guild_id or "",
                actor.id,
                spec.required_roles,
                f"/{request.name}",
            )

        context: Optional[ConnectionContext] = None
        if spec.requires_account:
            context = await self.lookups.connection_context(actor.id)
            if not context.connected:
                return not_connected_reply(self.connect_url)

        return await spec.handler(request, context)

    def _handler_failed(self, request: InboundRequest, error: Exception) -> Reply:
        actor = request.actor
        label = f"/{request.name}" if isinstance(request, CommandRequest) else f"{request.kind} {request.name}"
        logger.error(
            f"Discord {request.kind} handler failed: {label}: {error}",
            exc_info=True,
            extra={"command": request.name, "user_id": actor.id, "guild_id": request.origin.guild_id},
        )
        self.audit.emit(
            "Command Handler Error",
            f"{label} failed",
            [
                ("User", f"{actor.tag} ({actor.id})"),
                ("Guild", request.origin.guild_label),
                ("Error", truncate(error_message(error), 1000)),
            ],
        )
        return error_reply("Something Went Wrong", "That action failed. Please try again in a moment.")
