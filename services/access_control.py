"""Role checks against live guild membership."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from core.exceptions import AuthorizationError
from core.logger import get_logger

if TYPE_CHECKING:
    from bot.gateway import Gateway

logger = get_logger(__name__)


class AccessControl:
    """Re-fetches member roles on every check; nothing is cached."""

    def __init__(self, gateway: "Gateway") -> None:
        self.gateway = gateway

    async def has_any_role(self, guild_id: str, user_id: str, role_ids: Sequence[str]) -> bool:
        if not role_ids:
            return True
        if not guild_id:
            return False
        member_roles = set(await self.gateway.fetch_member_role_ids(guild_id, user_id))
        return any(role_id in member_roles for role_id in role_ids)

    async def require_any_role(
        self,
        guild_id: str,
        user_id: str,
        role_ids: Sequence[str],
        label: str,
    ) -> None:
        """Raise :class:`AuthorizationError` naming the roles when none is held."""
        if await self.has_any_role(guild_id, user_id, role_ids):
            return
        logger.info(
            f"Access denied: {label} for {user_id}",
            extra={"user_id": user_id, "guild_id": guild_id, "label": label},
        )
        raise AuthorizationError(label, role_ids)
