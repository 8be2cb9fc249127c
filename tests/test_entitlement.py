"""Tests for the premium entitlement toggle against a real sqlite store."""

import pytest

from core.exceptions import DatabaseError, SchemaMismatchError
from database.repositories import AccountRepository
from services.entitlement_service import EntitlementService, EntitlementStatus

from conftest import insert_profile


@pytest.mark.asyncio
async def test_grant_appends_badge_once(db_pool):
    await insert_profile(db_pool, "acct-1", "alice", badges=["verified"])
    service = EntitlementService(AccountRepository(db_pool))

    first = await service.set_entitlement("@Alice", grant=True)
    assert first.status is EntitlementStatus.OK
    assert first.changed is True
    assert first.badges == ["verified", "pro"]

    second = await service.set_entitlement("alice", grant=True)
    assert second.status is EntitlementStatus.OK
    assert second.changed is False
    assert second.badges == ["verified", "pro"]


@pytest.mark.asyncio
async def test_revoke_keeps_other_badges_in_order(db_pool):
    await insert_profile(db_pool, "acct-1", "alice", badges=["founder", "pro", "verified"])
    service = EntitlementService(AccountRepository(db_pool))

    result = await service.set_entitlement("alice", grant=False)
    assert result.changed is True
    assert result.badges == ["founder", "verified"]

    again = await service.set_entitlement("alice", grant=False)
    assert again.changed is False
    assert again.badges == ["founder", "verified"]

    status = await service.get_status("alice")
    assert status.ok and not status.active


@pytest.mark.asyncio
async def test_unchanged_toggle_does_not_write(db_pool):
    await insert_profile(db_pool, "acct-1", "alice", badges=["pro"])
    accounts = AccountRepository(db_pool)
    before = (await accounts.get_by_handle("alice")).updated_at

    result = await EntitlementService(accounts).set_entitlement("alice", grant=True)

    assert result.changed is False
    assert (await accounts.get_by_handle("alice")).updated_at == before


@pytest.mark.asyncio
async def test_invalid_and_missing_handles(db_pool):
    service = EntitlementService(AccountRepository(db_pool))

    invalid = await service.set_entitlement("no", grant=True)
    assert invalid.status is EntitlementStatus.INVALID_HANDLE

    missing = await service.set_entitlement("@ghost_user", grant=True)
    assert missing.status is EntitlementStatus.NOT_FOUND
    assert missing.handle == "ghost_user"


class _BrokenAccounts:
    def __init__(self, error):
        self.error = error

    async def get_badges(self, handle):
        raise self.error

    async def update_badges(self, account_id, badges):
        raise self.error


@pytest.mark.asyncio
async def test_schema_mismatch_carries_remediation():
    error = SchemaMismatchError("no such column: badges", "Run migrations first.")
    result = await EntitlementService(_BrokenAccounts(error)).set_entitlement("alice", grant=True)
    assert result.status is EntitlementStatus.SCHEMA_OUTDATED
    assert result.message == "Run migrations first."


@pytest.mark.asyncio
async def test_store_failure_is_reported_as_error():
    result = await EntitlementService(_BrokenAccounts(DatabaseError("disk I/O error"))).set_entitlement(
        "alice", grant=False
    )
    assert result.status is EntitlementStatus.ERROR


@pytest.mark.asyncio
async def test_missing_column_is_translated_to_schema_mismatch(db_pool):
    async with db_pool.connection() as conn:
        await conn.execute("CREATE TABLE legacy (id TEXT)")
        await conn.commit()
    repo = AccountRepository(db_pool)
    with pytest.raises(SchemaMismatchError):
        await repo.fetch_one("SELECT badges FROM legacy")


@pytest.mark.asyncio
async def test_grant_then_revoke_restores_original_badges(db_pool):
    await insert_profile(db_pool, "acct-1", "alice", badges=["founder", "verified"])
    service = EntitlementService(AccountRepository(db_pool))

    await service.set_entitlement("alice", grant=True)
    result = await service.set_entitlement("alice", grant=False)

    assert result.badges == ["founder", "verified"]
