"""Tests for the sqlite repositories."""

import pytest

from database import init_db_pool
from database.repositories import AccountRepository, StatsRepository, SyncStateRepository
from services.lookup_service import HandleLookupStatus, LookupService

from conftest import BUYER_USER_ID, insert_profile, make_admin


@pytest.mark.asyncio
async def test_created_after_is_strict_and_ordered(db_pool):
    await insert_profile(db_pool, "b", "second", created_at="2026-03-01T00:00:02.000Z")
    await insert_profile(db_pool, "a", "first", created_at="2026-03-01T00:00:01.000Z")
    await insert_profile(db_pool, "c", "tied", created_at="2026-03-01T00:00:02.000Z")
    repo = AccountRepository(db_pool)

    rows = await repo.created_after("2026-03-01T00:00:01.000Z", limit=10)

    assert [row.handle for row in rows] == ["second", "tied"]
    assert await repo.latest_created_at() == "2026-03-01T00:00:02.000Z"
    assert [row.handle for row in await repo.created_after("2026-01-01T00:00:00.000Z", limit=1)] == ["first"]


@pytest.mark.asyncio
async def test_account_lookups_and_admin_flag(db_pool):
    await insert_profile(db_pool, "acct-1", "alice", discord_user_id=BUYER_USER_ID, badges=["Pro"])
    await make_admin(db_pool, "acct-1")
    repo = AccountRepository(db_pool)

    by_discord = await repo.get_by_discord_id(BUYER_USER_ID)
    assert by_discord.handle == "alice"
    assert by_discord.badges == ["pro"]
    assert by_discord.is_public is True
    assert await repo.is_admin("acct-1") is True
    assert await repo.is_admin("acct-2") is False
    assert await repo.get_by_handle("nobody") is None


@pytest.mark.asyncio
async def test_stats_counts_and_recent_views(db_pool):
    await insert_profile(db_pool, "acct-1", "alice")
    async with db_pool.connection() as conn:
        await conn.executemany(
            "INSERT INTO comments (user_id, body) VALUES (?, ?)",
            [("acct-1", "hi"), ("acct-1", "yo"), ("acct-1", "hey")],
        )
        await conn.executemany(
            "INSERT INTO analytics_daily (user_id, day, profile_views) VALUES (?, ?, ?)",
            [("acct-1", f"2026-01-{day:02d}", 10) for day in range(1, 32)],
        )
        await conn.commit()
    stats = StatsRepository(db_pool)

    assert await stats.count("comments", "acct-1") == 3
    assert await stats.count("links", "acct-1") == 0
    assert await stats.views_30d("acct-1") == 300
    with pytest.raises(ValueError):
        await stats.count("profiles", "acct-1")


@pytest.mark.asyncio
async def test_sync_state_upsert(db_pool):
    repo = SyncStateRepository(db_pool)
    assert await repo.get("cursor") is None
    await repo.set("cursor", "2026-03-01T00:00:01.000Z")
    await repo.set("cursor", "2026-03-01T00:00:02.000Z")
    assert await repo.get("cursor") == "2026-03-01T00:00:02.000Z"


@pytest.mark.asyncio
async def test_ticket_handle_lookup_statuses(db_pool):
    await insert_profile(db_pool, "acct-1", "alice")
    lookups = LookupService(AccountRepository(db_pool), StatsRepository(db_pool))

    found = await lookups.lookup_ticket_handle(" @Alice ")
    assert found.status is HandleLookupStatus.FOUND
    assert found.label == "@alice"

    missing = await lookups.lookup_ticket_handle("bob_smith")
    assert missing.status is HandleLookupStatus.NOT_FOUND

    invalid = await lookups.lookup_ticket_handle("bad handle!")
    assert invalid.status is HandleLookupStatus.INVALID_FORMAT
    assert invalid.label == "bad handle! (unverified)"


@pytest.mark.asyncio
async def test_connection_context_ignores_malformed_ids(db_pool):
    lookups = LookupService(AccountRepository(db_pool), StatsRepository(db_pool))
    context = await lookups.connection_context("12345")
    assert not context.connected
    assert not context.is_admin


@pytest.mark.asyncio
async def test_init_db_pool_applies_pragmas(tmp_path):
    pool = await init_db_pool(str(tmp_path / "nested" / "atlas.sqlite"), pool_size=1, busy_timeout_ms=750)
    try:
        assert pool.size == 1
        async with pool.connection() as conn:
            cursor = await conn.execute("PRAGMA busy_timeout")
            row = await cursor.fetchone()
        assert row[0] == 750
    finally:
        await pool.close()
