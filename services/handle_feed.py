"""New-account feed: tails ``profiles.created_at`` and posts one embed per
new handle to the handle-create log channel.

The poller owns all of its state (cursor, backoff, busy flag). A timer task
fires a tick every interval; a tick still in flight turns the next trigger
into a no-op instead of queueing another one. Delivery is at-least-once: a
crash between posting and persisting the cursor replays those rows.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import suppress
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, TypeVar

from bot.embeds import handle_created_embed
from bot.replies import Message
from core.constants import HandleFeedDefaults
from core.exceptions import error_message, is_transient_error
from core.logger import get_logger
from database.repositories import AccountRepository, NewAccount, SyncStateRepository
from utils.formatting import utc_timestamp
from utils.performance import monitor

if TYPE_CHECKING:
    from bot.gateway import Gateway

logger = get_logger(__name__)

T = TypeVar("T")


class TickResult(str, Enum):
    SKIPPED_BUSY = "skipped_busy"
    SKIPPED_BACKOFF = "skipped_backoff"
    EMPTY = "empty"
    PROCESSED = "processed"
    FAILED = "failed"


@dataclass
class BackoffState:
    failures: int = 0
    not_before: float = 0.0
    last_delay: float = 0.0

    def advance(self, now: float, base: float, maximum: float) -> float:
        self.failures += 1
        self.last_delay = min(maximum, base * (2 ** (self.failures - 1)))
        self.not_before = now + self.last_delay
        return self.last_delay

    def reset(self) -> None:
        self.failures = 0
        self.not_before = 0.0
        self.last_delay = 0.0

    def blocks(self, now: float) -> bool:
        return now < self.not_before


@dataclass
class PollerState:
    cursor: Optional[str] = None
    backoff: BackoffState = field(default_factory=BackoffState)
    busy: bool = False
    last_failure_log: Optional[float] = None
    ticks: int = 0
    skipped: int = 0
    notified: int = 0
    delivery_failures: int = 0


class HandleFeedPoller:
    def __init__(
        self,
        accounts: AccountRepository,
        gateway: "Gateway",
        channel_id: str,
        site_url: str,
        sync_state: Optional[SyncStateRepository] = None,
        *,
        interval: float = HandleFeedDefaults.POLL_INTERVAL,
        batch_size: int = HandleFeedDefaults.BATCH_SIZE,
        max_query_retries: int = HandleFeedDefaults.MAX_QUERY_RETRIES,
        retry_base_delay: float = HandleFeedDefaults.RETRY_BASE_DELAY,
        backoff_base: float = HandleFeedDefaults.BACKOFF_BASE,
        backoff_max: float = HandleFeedDefaults.BACKOFF_MAX,
        failure_log_throttle: float = HandleFeedDefaults.FAILURE_LOG_THROTTLE,
        cursor_key: str = HandleFeedDefaults.CURSOR_KEY,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        now: Callable[[], str] = utc_timestamp,
    ) -> None:
        self.accounts = accounts
        self.gateway = gateway
        self.channel_id = channel_id
        self.site_url = site_url
        self.sync_state = sync_state
        self.interval = interval
        self.batch_size = batch_size
        self.max_query_retries = max(1, max_query_retries)
        self.retry_base_delay = retry_base_delay
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.failure_log_throttle = failure_log_throttle
        self.cursor_key = cursor_key
        self._clock = clock
        self._sleep = sleep
        self._now = now

        self.state = PollerState()
        self._timer: Optional[asyncio.Task] = None
        self._in_flight: Optional[asyncio.Task] = None

    # Lifecycle

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> bool:
        """Start the timer loop; returns ``False`` when it is already running."""
        if self.running:
            return False
        self._timer = asyncio.create_task(self._run(), name="handle-feed-timer")
        logger.info(
            f"Handle feed started (every {self.interval:.0f}s, batch {self.batch_size})",
            extra={"channel_id": self.channel_id},
        )
        return True

    async def stop(self) -> None:
        """Stop the timer and let an in-flight tick finish."""
        if self._timer is not None:
            self._timer.cancel()
            with suppress(asyncio.CancelledError):
                await self._timer
            self._timer = None
        if self._in_flight is not None and not self._in_flight.done():
            with suppress(Exception):
                await self._in_flight
        self._in_flight = None
        logger.info("Handle feed stopped", extra={"cursor": self.state.cursor})

    async def _run(self) -> None:
        while True:
            if self._in_flight is None or self._in_flight.done():
                self._in_flight = asyncio.create_task(self.trigger(), name="handle-feed-tick")
            else:
                # The running tick stays in _in_flight so stop() can wait for it.
                self.state.skipped += 1
            await asyncio.sleep(self.interval)

    async def trigger(self) -> TickResult:
        """Run one tick unless another is still in flight."""
        if self.state.busy:
            self.state.skipped += 1
            return TickResult.SKIPPED_BUSY
        self.state.busy = True
        try:
            return await self.tick()
        except Exception as e:
            logger.exception(f"Handle feed tick crashed: {e}")
            return TickResult.FAILED
        finally:
            self.state.busy = False

    # Tick

    async def tick(self) -> TickResult:
        self.state.ticks += 1
        if self.state.backoff.blocks(self._clock()):
            return TickResult.SKIPPED_BACKOFF

        await self.seed()
        cursor = self.state.cursor

        try:
            rows = await self._with_retries(lambda: self.accounts.created_after(cursor, self.batch_size))
        except Exception as e:
            self._record_failure(e, cursor)
            return TickResult.FAILED

        self._record_success()
        if not rows:
            return TickResult.EMPTY

        last_created_at = cursor
        for row in rows:
            await self._notify(row)
            last_created_at = row.created_at

        if last_created_at and (cursor is None or last_created_at > cursor):
            self.state.cursor = last_created_at
            await self._persist_cursor()
        return TickResult.PROCESSED

    async def seed(self) -> None:
        """Establish the cursor once: persisted value, then ``MAX(created_at)``, then now."""
        if self.state.cursor:
            return

        if self.sync_state is not None:
            try:
                persisted = await self.sync_state.get(self.cursor_key)
            except Exception as e:
                logger.warning(f"Persisted handle feed cursor unreadable: {e}")
                persisted = None
            if persisted:
                self.state.cursor = persisted
                logger.info(f"Handle feed resumed from {persisted}")
                return

        try:
            latest = await self._with_retries(self.accounts.latest_created_at)
        except Exception as e:
            self.state.cursor = self._now()
            if self._should_log_failure():
                logger.error(
                    f"Handle feed cursor seed failed, starting from now: {error_message(e)}",
                    extra={"cursor": self.state.cursor},
                )
            return

        self.state.cursor = latest or self._now()
        self.state.backoff.reset()
        logger.info(f"Handle feed seeded at {self.state.cursor}")

    # Helpers

    async def _with_retries(self, operation: Callable[[], Awaitable[T]]) -> T:
        for attempt in range(1, self.max_query_retries + 1):
            try:
                return await operation()
            except Exception as e:
                if attempt < self.max_query_retries and is_transient_error(e):
                    await self._sleep(self.retry_base_delay * attempt)
                    continue
                raise
        raise RuntimeError("unreachable")

    async def _notify(self, row: NewAccount) -> None:
        message = Message(embeds=[handle_created_embed(self.site_url, row)])
        try:
            await self.gateway.send_message(self.channel_id, message)
        except Exception as e:
            self.state.delivery_failures += 1
            monitor.record_notification(False)
            logger.error(
                f"Handle-create log send failed for @{row.handle}: {e}",
                extra={"channel_id": self.channel_id, "handle": row.handle},
            )
            return
        self.state.notified += 1
        monitor.record_notification(True)

    async def _persist_cursor(self) -> None:
        if self.sync_state is None or not self.state.cursor:
            return
        try:
            await self.sync_state.set(self.cursor_key, self.state.cursor)
        except Exception as e:
            logger.warning(f"Handle feed cursor persist failed: {e}", extra={"cursor": self.state.cursor})

    def _record_failure(self, error: Exception, cursor: Optional[str]) -> None:
        transient = is_transient_error(error)
        delay = 0.0
        if transient:
            delay = self.state.backoff.advance(self._clock(), self.backoff_base, self.backoff_max)
        monitor.record_feed_failure(transient, delay)

        if self._should_log_failure():
            logger.error(
                f"Handle feed sync failed: {error_message(error)}",
                extra={
                    "cursor": cursor,
                    "transient": transient,
                    "attempt": self.state.backoff.failures,
                    "next_retry_in": delay,
                },
            )

    def _record_success(self) -> None:
        if self.state.backoff.failures:
            logger.info(f"Handle feed recovered after {self.state.backoff.failures} failures")
        self.state.backoff.reset()
        monitor.record_feed_recovered()

    def _should_log_failure(self) -> bool:
        now = self._clock()
        last = self.state.last_failure_log
        if last is not None and now - last < self.failure_log_throttle:
            return False
        self.state.last_failure_log = now
        return True

    def snapshot(self) -> Dict[str, Any]:
        backoff = self.state.backoff
        return {
            "running": self.running,
            "cursor": self.state.cursor,
            "busy": self.state.busy,
            "failures": backoff.failures,
            "retry_in": max(0.0, backoff.not_before - self._clock()) if backoff.failures else 0.0,
            "ticks": self.state.ticks,
            "skipped": self.state.skipped,
            "notified": self.state.notified,
        }
