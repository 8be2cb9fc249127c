"""Read-only account lookups used by commands and tickets."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.exceptions import DatabaseError, NotFoundError, ValidationError
from core.logger import get_logger
from database.repositories import Account, AccountRepository, AccountStats, StatsRepository
from utils.validators import is_discord_user_id, is_valid_handle, normalize_handle

logger = get_logger(__name__)


class HandleLookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    LOOKUP_FAILED = "lookup_failed"
    INVALID_FORMAT = "invalid_format"


@dataclass(frozen=True)
class HandleLookup:
    status: HandleLookupStatus
    raw: str
    handle: str
    account: Optional[Account] = None

    @property
    def label(self) -> str:
        """Handle as shown in ticket metadata and summaries."""
        if not self.raw:
            return "Not provided"
        if self.status is HandleLookupStatus.INVALID_FORMAT:
            return f"{self.raw} (unverified)"
        return f"@{self.handle}"


@dataclass(frozen=True)
class ConnectionContext:
    account: Optional[Account] = None
    is_admin: bool = False

    @property
    def connected(self) -> bool:
        return self.account is not None


@dataclass(frozen=True)
class WhoisResult:
    account: Account
    stats: AccountStats


class LookupService:
    def __init__(self, accounts: AccountRepository, stats: StatsRepository) -> None:
        self.accounts = accounts
        self.stats = stats

    async def connection_context(self, discord_user_id: str) -> ConnectionContext:
        """Resolve the Atlas account linked to a Discord user.

        Store failures are logged and treated as "not connected".
        """
        if not is_discord_user_id(discord_user_id):
            return ConnectionContext()

        try:
            account = await self.accounts.get_by_discord_id(discord_user_id)
        except DatabaseError as e:
            logger.error(
                f"Connection lookup failed for {discord_user_id}: {e}",
                extra={"discord_user_id": discord_user_id},
            )
            return ConnectionContext()

        if account is None:
            return ConnectionContext()

        try:
            is_admin = await self.accounts.is_admin(account.id)
        except DatabaseError as e:
            logger.error(f"Admin lookup failed for {account.id}: {e}", extra={"account_id": account.id})
            is_admin = False

        return ConnectionContext(account=account, is_admin=is_admin)

    async def lookup_ticket_handle(self, raw_handle: Optional[str]) -> HandleLookup:
        raw = (raw_handle or "").strip()
        handle = normalize_handle(raw)
        if not raw or not is_valid_handle(handle):
            return HandleLookup(status=HandleLookupStatus.INVALID_FORMAT, raw=raw, handle=handle)

        try:
            account = await self.accounts.get_by_handle(handle)
        except DatabaseError as e:
            logger.error(f"Ticket handle lookup failed for {handle}: {e}", extra={"handle": handle})
            return HandleLookup(status=HandleLookupStatus.LOOKUP_FAILED, raw=raw, handle=handle)

        if account is None:
            return HandleLookup(status=HandleLookupStatus.NOT_FOUND, raw=raw, handle=handle)
        return HandleLookup(status=HandleLookupStatus.FOUND, raw=raw, handle=handle, account=account)

    async def account_stats(self, account_id: str) -> AccountStats:
        """Aggregate counts, queried concurrently; a failed count reads as zero."""
        results = await asyncio.gather(
            self.stats.count("links", account_id),
            self.stats.count("music_tracks", account_id),
            self.stats.count("widgets", account_id),
            self.stats.count("comments", account_id),
            self.stats.views_30d(account_id),
            return_exceptions=True,
        )

        values = []
        for result in results:
            if isinstance(result, BaseException):
                logger.warning(f"Aggregate count failed for {account_id}: {result}", extra={"account_id": account_id})
                values.append(0)
            else:
                values.append(result)

        links, tracks, widgets, comments, views = values
        return AccountStats(
            links=links,
            music_tracks=tracks,
            widgets=widgets,
            comments=comments,
            views_30d=views,
        )

    async def whois(self, raw_handle: str) -> WhoisResult:
        """Full profile summary for ``raw_handle``.

        Raises:
            ValidationError: malformed handle
            NotFoundError: no account with that handle
            DatabaseError: the profile query itself failed
        """
        handle = normalize_handle(raw_handle)
        if not is_valid_handle(handle):
            raise ValidationError(
                "Use a valid handle: 3-20 chars, lowercase letters, numbers, underscores.",
                title="Invalid Handle",
            )

        account = await self.accounts.get_by_handle(handle)
        if account is None:
            raise NotFoundError(f"No Atlas profile found for **@{handle}**.")

        stats = await self.account_stats(account.id)
        return WhoisResult(account=account, stats=stats)
