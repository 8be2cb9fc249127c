"""Tests for the new-handle feed poller."""

import asyncio
import logging

import pytest

from core.exceptions import SchemaMismatchError, TransientInfraError
from database.repositories import AccountRepository, NewAccount, SyncStateRepository
from services.handle_feed import BackoffState, HandleFeedPoller, TickResult

from conftest import FEED_CHANNEL_ID, insert_profile


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now


class FakeAccounts:
    """Scripted ``created_after`` results; each item is a row list or an exception."""

    def __init__(self, latest=None, batches=(), latest_error=None):
        self.latest = latest
        self.latest_error = latest_error
        self.batches = list(batches)
        self.queries = []

    async def latest_created_at(self):
        if self.latest_error is not None:
            raise self.latest_error
        return self.latest

    async def created_after(self, cursor, limit):
        self.queries.append((cursor, limit))
        result = self.batches.pop(0) if self.batches else []
        if isinstance(result, Exception):
            raise result
        return result


class FakeSyncState:
    def __init__(self, values=None):
        self.values = dict(values or {})

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value):
        self.values[key] = value


def row(n):
    return NewAccount(
        id=f"acct-{n}",
        handle=f"user_{n}",
        display_name=None,
        created_at=f"2026-03-01T00:00:0{n}.000Z",
    )


def make_poller(accounts, gateway, clock=None, sync_state=None, sleeps=None, **kwargs):
    recorded = sleeps if sleeps is not None else []

    async def fake_sleep(delay):
        recorded.append(delay)

    return HandleFeedPoller(
        accounts,
        gateway,
        FEED_CHANNEL_ID,
        "https://atlas.test",
        sync_state,
        clock=clock or FakeClock(),
        sleep=fake_sleep,
        now=lambda: "2026-03-01T12:00:00.000Z",
        **kwargs,
    )


def test_backoff_doubles_and_caps():
    state = BackoffState()
    delays = [state.advance(0.0, 30.0, 300.0) for _ in range(6)]
    assert delays == [30.0, 60.0, 120.0, 240.0, 300.0, 300.0]
    assert state.blocks(299.0)
    state.reset()
    assert not state.blocks(0.0)


@pytest.mark.asyncio
async def test_rows_are_posted_in_order_and_cursor_persists(gateway):
    accounts = FakeAccounts(latest="2026-03-01T00:00:00.000Z", batches=[[row(1), row(2), row(3)]])
    sync_state = FakeSyncState()
    poller = make_poller(accounts, gateway, sync_state=sync_state)

    assert await poller.tick() is TickResult.PROCESSED

    messages = gateway.messages_to(FEED_CHANNEL_ID)
    assert [m.embeds[0].field_value("Handle") for m in messages] == ["@user_1", "@user_2", "@user_3"]
    assert poller.state.cursor == "2026-03-01T00:00:03.000Z"
    assert sync_state.values["handle_feed_cursor"] == "2026-03-01T00:00:03.000Z"
    assert accounts.queries == [("2026-03-01T00:00:00.000Z", 50)]


@pytest.mark.asyncio
async def test_empty_tick_keeps_cursor(gateway):
    accounts = FakeAccounts(latest="2026-03-01T00:00:00.000Z")
    poller = make_poller(accounts, gateway)
    assert await poller.tick() is TickResult.EMPTY
    assert poller.state.cursor == "2026-03-01T00:00:00.000Z"
    assert gateway.sent == []


@pytest.mark.asyncio
async def test_seed_falls_back_to_now_for_empty_store(gateway):
    poller = make_poller(FakeAccounts(latest=None), gateway)
    await poller.seed()
    assert poller.state.cursor == "2026-03-01T12:00:00.000Z"


@pytest.mark.asyncio
async def test_seed_failure_starts_from_now(gateway):
    accounts = FakeAccounts(latest_error=SchemaMismatchError("no such column: created_at", "migrate"))
    poller = make_poller(accounts, gateway)
    await poller.seed()
    assert poller.state.cursor == "2026-03-01T12:00:00.000Z"


@pytest.mark.asyncio
async def test_persisted_cursor_wins_over_store_max(gateway):
    accounts = FakeAccounts(latest="2026-03-09T00:00:00.000Z")
    sync_state = FakeSyncState({"handle_feed_cursor": "2026-03-01T00:00:00.000Z"})
    poller = make_poller(accounts, gateway, sync_state=sync_state)
    await poller.seed()
    assert poller.state.cursor == "2026-03-01T00:00:00.000Z"


@pytest.mark.asyncio
async def test_transient_failures_back_off_exponentially_then_reset(gateway):
    error = TransientInfraError("database is locked")
    accounts = FakeAccounts(latest="2026-03-01T00:00:00.000Z", batches=[error] * 9 + [[row(1)]])
    clock = FakeClock()
    poller = make_poller(accounts, gateway, clock=clock)

    delays = []
    for _ in range(3):
        assert await poller.tick() is TickResult.FAILED
        delays.append(poller.state.backoff.last_delay)
        assert await poller.tick() is TickResult.SKIPPED_BACKOFF
        clock.now = poller.state.backoff.not_before

    assert delays == [30.0, 60.0, 120.0]

    assert await poller.tick() is TickResult.PROCESSED
    assert poller.state.backoff.failures == 0
    assert not poller.state.backoff.blocks(clock.now)


@pytest.mark.asyncio
async def test_non_transient_failure_does_not_back_off(gateway):
    error = SchemaMismatchError("no such column: created_at", "migrate")
    accounts = FakeAccounts(latest="2026-03-01T00:00:00.000Z", batches=[error])
    poller = make_poller(accounts, gateway)

    assert await poller.tick() is TickResult.FAILED
    assert poller.state.backoff.not_before == 0.0
    assert len(accounts.queries) == 1


@pytest.mark.asyncio
async def test_transient_query_errors_are_retried_inside_a_tick(gateway):
    error = TransientInfraError("socket hang up")
    accounts = FakeAccounts(latest="2026-03-01T00:00:00.000Z", batches=[error, error, [row(1)]])
    sleeps = []
    poller = make_poller(accounts, gateway, sleeps=sleeps)

    assert await poller.tick() is TickResult.PROCESSED
    assert sleeps == [0.5, 1.0]
    assert len(accounts.queries) == 3


@pytest.mark.asyncio
async def test_failed_notification_does_not_block_the_rest(gateway):
    accounts = FakeAccounts(latest="2026-03-01T00:00:00.000Z", batches=[[row(1), row(2)]])
    poller = make_poller(accounts, gateway)

    original = gateway.send_message
    calls = []

    async def flaky_send(channel_id, message):
        calls.append(channel_id)
        if len(calls) == 1:
            raise RuntimeError("Missing Access")
        await original(channel_id, message)

    gateway.send_message = flaky_send

    assert await poller.tick() is TickResult.PROCESSED
    assert len(gateway.messages_to(FEED_CHANNEL_ID)) == 1
    assert poller.state.delivery_failures == 1
    assert poller.state.cursor == "2026-03-01T00:00:02.000Z"


@pytest.mark.asyncio
async def test_trigger_skips_while_busy(gateway):
    poller = make_poller(FakeAccounts(latest="2026-03-01T00:00:00.000Z"), gateway)
    poller.state.busy = True
    assert await poller.trigger() is TickResult.SKIPPED_BUSY
    assert poller.state.skipped == 1
    assert poller.state.ticks == 0


@pytest.mark.asyncio
async def test_start_is_idempotent(gateway):
    poller = make_poller(FakeAccounts(latest="2026-03-01T00:00:00.000Z"), gateway, interval=3600)
    assert poller.start() is True
    assert poller.start() is False
    await poller.stop()
    assert not poller.running


@pytest.mark.asyncio
async def test_feed_against_sqlite_store(db_pool, gateway):
    await insert_profile(db_pool, "acct-0", "old_user", created_at="2026-03-01T00:00:00.000Z")
    sync_state = SyncStateRepository(db_pool)
    poller = make_poller(AccountRepository(db_pool), gateway, sync_state=sync_state)

    assert await poller.tick() is TickResult.EMPTY

    await insert_profile(db_pool, "acct-2", "second", created_at="2026-03-01T00:00:02.000Z")
    await insert_profile(db_pool, "acct-1", "first", created_at="2026-03-01T00:00:01.000Z")

    assert await poller.tick() is TickResult.PROCESSED
    handles = [m.embeds[0].field_value("Handle") for m in gateway.messages_to(FEED_CHANNEL_ID)]
    assert handles == ["@first", "@second"]
    assert await sync_state.get("handle_feed_cursor") == "2026-03-01T00:00:02.000Z"


class BlockingAccounts(FakeAccounts):
    """``created_after`` parks until ``release`` is set."""

    def __init__(self):
        super().__init__(latest="2026-03-01T00:00:00.000Z")
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def created_after(self, cursor, limit):
        self.queries.append((cursor, limit))
        self.entered.set()
        await self.release.wait()
        return [row(1)]


@pytest.mark.asyncio
async def test_stop_waits_for_the_running_tick(gateway):
    accounts = BlockingAccounts()
    poller = make_poller(accounts, gateway, interval=0.01)
    poller.start()

    await asyncio.wait_for(accounts.entered.wait(), timeout=1)
    await asyncio.sleep(0.05)
    assert poller.state.skipped >= 1
    assert len(accounts.queries) == 1

    stopping = asyncio.create_task(poller.stop())
    await asyncio.sleep(0.02)
    assert not stopping.done()
    assert poller.state.busy

    accounts.release.set()
    await asyncio.wait_for(stopping, timeout=1)

    assert not poller.state.busy
    assert poller.state.cursor == "2026-03-01T00:00:01.000Z"
    assert len(gateway.messages_to(FEED_CHANNEL_ID)) == 1


def failure_records(caplog, prefix):
    return [r for r in caplog.records if r.levelno == logging.ERROR and r.getMessage().startswith(prefix)]


@pytest.mark.asyncio
async def test_failure_logs_are_throttled_to_one_per_window(gateway, caplog):
    error = SchemaMismatchError("no such column: created_at", "migrate")
    accounts = FakeAccounts(latest="2026-03-01T00:00:00.000Z", batches=[error] * 6)
    clock = FakeClock()
    poller = make_poller(accounts, gateway, clock=clock)
    caplog.set_level(logging.ERROR, logger="services.handle_feed")

    for _ in range(5):
        assert await poller.tick() is TickResult.FAILED
        clock.now += 10

    assert len(failure_records(caplog, "Handle feed sync failed")) == 1

    clock.now += 30
    assert await poller.tick() is TickResult.FAILED
    assert len(failure_records(caplog, "Handle feed sync failed")) == 2


@pytest.mark.asyncio
async def test_seed_failure_shares_the_log_window(gateway, caplog):
    accounts = FakeAccounts(
        latest_error=SchemaMismatchError("no such column: created_at", "migrate"),
        batches=[SchemaMismatchError("no such column: created_at", "migrate")],
    )
    clock = FakeClock()
    poller = make_poller(accounts, gateway, clock=clock)
    caplog.set_level(logging.ERROR, logger="services.handle_feed")

    clock.now += 5
    assert await poller.tick() is TickResult.FAILED

    assert len(failure_records(caplog, "Handle feed cursor seed failed")) == 1
    assert failure_records(caplog, "Handle feed sync failed") == []
    assert poller.state.cursor == "2026-03-01T12:00:00.000Z"
