"""Premium entitlement (``pro`` badge) toggling.

This is the only code path allowed to change an account's badge set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from core.constants import PremiumPlan
from core.exceptions import DatabaseError, SchemaMismatchError
from core.logger import get_logger
from database.repositories import AccountRepository
from utils.validators import is_valid_handle, normalize_handle

logger = get_logger(__name__)


class EntitlementStatus(str, Enum):
    INVALID_HANDLE = "invalid_handle"
    NOT_FOUND = "not_found"
    SCHEMA_OUTDATED = "schema_outdated"
    ERROR = "error"
    OK = "ok"


@dataclass(frozen=True)
class EntitlementResult:
    status: EntitlementStatus
    handle: str
    changed: bool = False
    badges: List[str] = field(default_factory=list)
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is EntitlementStatus.OK

    @property
    def active(self) -> bool:
        return PremiumPlan.BADGE in self.badges


class EntitlementService:
    """Idempotent grant/revoke of the premium badge by handle."""

    def __init__(self, accounts: AccountRepository, badge: str = PremiumPlan.BADGE) -> None:
        self.accounts = accounts
        self.badge = badge

    async def _load(self, raw_handle: str):
        handle = normalize_handle(raw_handle)
        if not is_valid_handle(handle):
            return handle or raw_handle, None, EntitlementResult(
                status=EntitlementStatus.INVALID_HANDLE,
                handle=handle or raw_handle,
            )

        try:
            found = await self.accounts.get_badges(handle)
        except SchemaMismatchError as e:
            return handle, None, self._schema_outdated(handle, e)
        except DatabaseError as e:
            logger.error(
                f"Premium badge lookup failed for {handle}: {e}",
                extra={"handle": handle},
            )
            return handle, None, EntitlementResult(status=EntitlementStatus.ERROR, handle=handle)

        if found is None:
            return handle, None, EntitlementResult(status=EntitlementStatus.NOT_FOUND, handle=handle)
        return handle, found, None

    def _schema_outdated(self, handle: str, error: SchemaMismatchError) -> EntitlementResult:
        logger.error(
            f"Premium badge update hit outdated schema for {handle}: {error}",
            extra={"handle": handle},
        )
        return EntitlementResult(
            status=EntitlementStatus.SCHEMA_OUTDATED,
            handle=handle,
            message=error.remediation,
        )

    async def set_entitlement(self, raw_handle: str, grant: bool) -> EntitlementResult:
        """Grant or revoke the badge; the store is only written when membership changes."""
        handle, found, failure = await self._load(raw_handle)
        if failure is not None:
            return failure

        account_id, current = found
        has_badge = self.badge in current
        if has_badge == grant:
            return EntitlementResult(
                status=EntitlementStatus.OK,
                handle=handle,
                changed=False,
                badges=current,
            )

        if grant:
            updated = [*current, self.badge]
        else:
            updated = [badge for badge in current if badge != self.badge]

        try:
            await self.accounts.update_badges(account_id, updated)
        except SchemaMismatchError as e:
            return self._schema_outdated(handle, e)
        except DatabaseError as e:
            logger.error(
                f"Premium badge update failed for {handle}: {e}",
                extra={"handle": handle, "grant": grant},
            )
            return EntitlementResult(status=EntitlementStatus.ERROR, handle=handle)

        logger.info(
            f"Premium badge {'granted to' if grant else 'revoked from'} {handle}",
            extra={"handle": handle, "grant": grant},
        )
        return EntitlementResult(
            status=EntitlementStatus.OK,
            handle=handle,
            changed=True,
            badges=updated,
        )

    async def get_status(self, raw_handle: str) -> EntitlementResult:
        """Read-only variant backing ``/premium-status``."""
        handle, found, failure = await self._load(raw_handle)
        if failure is not None:
            return failure
        _, current = found
        return EntitlementResult(status=EntitlementStatus.OK, handle=handle, badges=current)
