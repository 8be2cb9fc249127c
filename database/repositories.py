"""Database access layer helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

import aiosqlite

from database.base_repository import BaseRepository
from utils.formatting import parse_badges, utc_timestamp


ACCOUNT_COLUMNS = (
    "id, handle, display_name, bio, badges, is_public, comments_enabled, is_banned, "
    "discord_presence_enabled, discord_user_id, theme, template, layout, "
    "profile_effect, background_effect, created_at, updated_at"
)


@dataclass(frozen=True)
class Account:
    """A ``profiles`` row as the control plane sees it."""

    id: str
    handle: str
    display_name: Optional[str]
    bio: Optional[str]
    badges: List[str]
    is_public: bool
    comments_enabled: bool
    is_banned: bool
    discord_presence_enabled: bool
    discord_user_id: Optional[str]
    theme: str
    template: str
    layout: str
    profile_effect: str
    background_effect: str
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: aiosqlite.Row) -> "Account":
        return cls(
            id=str(row["id"]),
            handle=row["handle"],
            display_name=row["display_name"],
            bio=row["bio"],
            badges=parse_badges(row["badges"]),
            is_public=bool(row["is_public"]),
            comments_enabled=bool(row["comments_enabled"]),
            is_banned=bool(row["is_banned"]),
            discord_presence_enabled=bool(row["discord_presence_enabled"]),
            discord_user_id=row["discord_user_id"],
            theme=row["theme"],
            template=row["template"],
            layout=row["layout"],
            profile_effect=row["profile_effect"],
            background_effect=row["background_effect"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @property
    def label(self) -> str:
        return self.display_name or self.handle


@dataclass(frozen=True)
class NewAccount:
    """Minimal row emitted by the handle feed."""

    id: str
    handle: str
    display_name: Optional[str]
    created_at: str


@dataclass(frozen=True)
class AccountStats:
    links: int = 0
    music_tracks: int = 0
    widgets: int = 0
    comments: int = 0
    views_30d: int = 0


class AccountRepository(BaseRepository):
    """Repository for account (profile) operations."""

    async def get_by_handle(self, handle: str) -> Optional[Account]:
        row = await self.fetch_one(
            f"SELECT {ACCOUNT_COLUMNS} FROM profiles WHERE handle=?",
            (handle,),
        )
        return Account.from_row(row) if row else None

    async def get_by_discord_id(self, discord_user_id: str) -> Optional[Account]:
        """Resolve the account linked to a Discord user."""
        row = await self.fetch_one(
            f"SELECT {ACCOUNT_COLUMNS} FROM profiles WHERE discord_user_id=?",
            (discord_user_id,),
        )
        return Account.from_row(row) if row else None

    async def get_badges(self, handle: str) -> Optional[Tuple[str, List[str]]]:
        """Return ``(account id, badge set)`` for ``handle``, or ``None`` when there is no such account."""
        row = await self.fetch_one("SELECT id, badges FROM profiles WHERE handle=?", (handle,))
        if row is None:
            return None
        return str(row["id"]), parse_badges(row["badges"])

    async def update_badges(self, account_id: str, badges: Sequence[str]) -> int:
        return await self.execute(
            "UPDATE profiles SET badges=?, updated_at=? WHERE id=?",
            (json.dumps(list(badges)), utc_timestamp(), account_id),
        )

    async def latest_created_at(self) -> Optional[str]:
        return await self.fetch_value("SELECT MAX(created_at) FROM profiles")

    async def created_after(self, cursor: str, limit: int) -> List[NewAccount]:
        """Accounts created strictly after ``cursor``, oldest first."""
        rows = await self.fetch_all(
            "SELECT id, handle, display_name, created_at FROM profiles "
            "WHERE created_at > ? ORDER BY created_at ASC, id ASC LIMIT ?",
            (cursor, limit),
        )
        return [
            NewAccount(
                id=str(row["id"]),
                handle=row["handle"],
                display_name=row["display_name"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    async def is_admin(self, account_id: str) -> bool:
        value = await self.fetch_value(
            "SELECT user_id FROM admin_users WHERE user_id=?",
            (account_id,),
        )
        return value is not None


class StatsRepository(BaseRepository):
    """Count-only aggregate queries behind ``/whois``."""

    _COUNT_TABLES = ("links", "music_tracks", "widgets", "comments")

    async def count(self, table: str, account_id: str) -> int:
        if table not in self._COUNT_TABLES:
            raise ValueError(f"Unsupported aggregate table: {table}")
        value = await self.fetch_value(
            f"SELECT COUNT(*) FROM {table} WHERE user_id=?",
            (account_id,),
        )
        return int(value or 0)

    async def views_30d(self, account_id: str) -> int:
        value = await self.fetch_value(
            "SELECT COALESCE(SUM(profile_views), 0) FROM ("
            "SELECT profile_views FROM analytics_daily WHERE user_id=? "
            "ORDER BY day DESC LIMIT 30)",
            (account_id,),
        )
        return int(value or 0)


class SyncStateRepository(BaseRepository):
    """Key/value watermarks persisted across restarts."""

    async def get(self, key: str) -> Optional[str]:
        return await self.fetch_value("SELECT value FROM sync_state WHERE key=?", (key,))

    async def set(self, key: str, value: Any) -> None:
        await self.execute(
            """INSERT INTO sync_state (key, value, updated_at) VALUES (?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
            """,
            (key, str(value), utc_timestamp()),
        )
