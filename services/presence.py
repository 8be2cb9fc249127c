"""Gateway presence translation.

The translator is a set of pure functions over :class:`RawPresence`; the
:class:`PresenceService` only adds the gateway fetch and degrades every
failure to an offline snapshot. Snapshots are never cached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from core.constants import PresenceStatus
from core.logger import get_logger
from utils.validators import is_discord_user_id

if TYPE_CHECKING:
    from bot.gateway import Gateway

logger = get_logger(__name__)


class ActivityKind(IntEnum):
    """Discord activity types."""
    PLAYING = 0
    STREAMING = 1
    LISTENING = 2
    WATCHING = 3
    CUSTOM = 4
    COMPETING = 5


@dataclass(frozen=True)
class RawActivity:
    type: int
    name: Optional[str] = None
    details: Optional[str] = None
    state: Optional[str] = None


@dataclass(frozen=True)
class RawPresence:
    status: Optional[str] = None
    activities: Sequence[RawActivity] = field(default_factory=tuple)
    username: Optional[str] = None
    global_name: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class PresenceActivity:
    name: Optional[str]
    details: Optional[str]
    state: Optional[str]


@dataclass(frozen=True)
class PresenceListening:
    title: str
    artist: Optional[str]


@dataclass(frozen=True)
class PresenceSnapshot:
    status: PresenceStatus
    username: Optional[str] = None
    global_name: Optional[str] = None
    avatar_url: Optional[str] = None
    activity: Optional[PresenceActivity] = None
    listening: Optional[PresenceListening] = None

    @classmethod
    def offline(cls) -> "PresenceSnapshot":
        return cls(status=PresenceStatus.OFFLINE)

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape consumed by the profile renderer."""
        activity = None
        if self.activity is not None:
            activity = {
                "name": self.activity.name,
                "details": self.activity.details,
                "state": self.activity.state,
            }
        listening = None
        if self.listening is not None:
            listening = {"title": self.listening.title, "artist": self.listening.artist}
        return {
            "status": self.status.value,
            "username": self.username,
            "globalName": self.global_name,
            "avatarUrl": self.avatar_url,
            "activity": activity,
            "listening": listening,
        }


def normalize_status(value: Any) -> PresenceStatus:
    """Map any raw status onto the four known values; unknown means offline."""
    if isinstance(value, PresenceStatus):
        return value
    try:
        return PresenceStatus(str(value).strip().lower())
    except ValueError:
        return PresenceStatus.OFFLINE


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip()
    return text or None


def usable_activities(activities: Sequence[RawActivity]) -> List[RawActivity]:
    """Drop activities without a name."""
    return [item for item in activities if item is not None and _clean(item.name)]


def pick_primary_activity(include_activity: bool, activities: Sequence[RawActivity]) -> Optional[PresenceActivity]:
    """First activity that is neither a custom status nor music.

    Listening is skipped as well as Custom, so music never doubles as the
    primary activity: a member showing only a custom status and a song has
    ``activity`` None, with the song reported through :func:`pick_listening`.
    Skipping Custom alone would surface the song here too.
    """
    if not include_activity:
        return None
    for item in usable_activities(activities):
        if item.type in (ActivityKind.CUSTOM, ActivityKind.LISTENING):
            continue
        return PresenceActivity(name=item.name, details=item.details, state=item.state)
    return None


def pick_listening(include_activity: bool, activities: Sequence[RawActivity]) -> Optional[PresenceListening]:
    if not include_activity:
        return None
    listening = next(
        (item for item in usable_activities(activities) if item.type == ActivityKind.LISTENING),
        None,
    )
    if listening is None:
        return None

    title = _clean(listening.details) or _clean(listening.name)
    if not title:
        return None
    return PresenceListening(title=title, artist=_clean(listening.state))


def translate_presence(raw: Optional[RawPresence], include_activity: bool) -> PresenceSnapshot:
    if raw is None:
        return PresenceSnapshot.offline()
    activities = list(raw.activities or ())
    return PresenceSnapshot(
        status=normalize_status(raw.status),
        username=raw.username,
        global_name=raw.global_name,
        avatar_url=raw.avatar_url,
        activity=pick_primary_activity(include_activity, activities),
        listening=pick_listening(include_activity, activities),
    )


class PresenceService:
    """Fetches and translates presence for one guild."""

    def __init__(self, gateway: Optional["Gateway"], guild_id: str) -> None:
        self.gateway = gateway
        self.guild_id = guild_id

    async def get_presence(self, user_id: str, include_activity: bool = True) -> PresenceSnapshot:
        user_id = (user_id or "").strip()
        if not is_discord_user_id(user_id) or self.gateway is None:
            return PresenceSnapshot.offline()

        try:
            raw = await self.gateway.fetch_presence(self.guild_id, user_id)
        except Exception as e:
            logger.warning(
                f"Presence fetch failed for {user_id}: {e}",
                extra={"user_id": user_id, "guild_id": self.guild_id},
            )
            return PresenceSnapshot.offline()

        return translate_presence(raw, include_activity)
