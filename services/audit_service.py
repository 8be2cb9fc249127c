"""Best-effort audit log posted to the bot log channel.

Callers enqueue entries with :meth:`AuditLogger.emit`, which never blocks and
never raises. A single worker task drains the bounded queue through a
throttler so a burst of commands cannot trip the gateway rate limits.
"""

from __future__ import annotations

import asyncio
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable, Optional, Tuple

from asyncio_throttle import Throttler

from bot.replies import Message, base_embed
from core.constants import AuditDefaults, Colors
from core.logger import get_logger
from utils.performance import monitor

if TYPE_CHECKING:
    from bot.gateway import Gateway

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuditEntry:
    title: str
    description: str
    fields: Tuple[Tuple[str, str], ...] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_message(self) -> Message:
        embed = base_embed(self.title, self.description, Colors.BRAND)
        for name, value in self.fields[: AuditDefaults.FIELD_LIMIT]:
            embed.add_field(name, value)
        return Message(embeds=[embed])


class AuditLogger:
    """Bounded queue consumed by a dedicated throttled worker."""

    def __init__(
        self,
        gateway: Optional["Gateway"],
        channel_id: str,
        queue_size: int = AuditDefaults.QUEUE_SIZE,
        rate_limit: int = AuditDefaults.RATE_LIMIT,
        rate_period: float = AuditDefaults.RATE_PERIOD,
    ) -> None:
        self.gateway = gateway
        self.channel_id = channel_id
        self.throttler = Throttler(rate_limit=max(1, rate_limit), period=rate_period)
        self._queue: "asyncio.Queue[AuditEntry]" = asyncio.Queue(maxsize=max(1, queue_size))
        self._worker: Optional[asyncio.Task] = None
        self.sent = 0
        self.failed = 0
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def emit(
        self,
        title: str,
        description: str,
        fields: Optional[Iterable[Tuple[str, str]]] = None,
    ) -> bool:
        """Queue an entry; returns ``False`` when it was dropped."""
        entry = AuditEntry(title=title, description=description, fields=tuple(fields or ()))
        try:
            self._queue.put_nowait(entry)
        except asyncio.QueueFull:
            self.dropped += 1
            monitor.record_audit("dropped")
            logger.warning(f"Audit queue full, dropped entry: {title}", extra={"dropped": self.dropped})
            return False
        return True

    async def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="audit-logger")
        logger.info(f"Audit logger started (channel {self.channel_id})")

    async def stop(self, drain_timeout: float = 5.0) -> None:
        if self._worker is None:
            return
        if self.running and drain_timeout > 0:
            with suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
        self._worker.cancel()
        with suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None
        logger.info(
            f"Audit logger stopped: sent={self.sent} failed={self.failed} dropped={self.dropped}"
        )

    async def flush(self) -> None:
        """Wait until every queued entry has been handled."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            entry = await self._queue.get()
            try:
                async with self.throttler:
                    await self._deliver(entry)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failed += 1
                monitor.record_audit("failed")
                logger.warning(
                    f"Audit log delivery failed: {e}",
                    extra={"title": entry.title, "channel_id": self.channel_id},
                )
            finally:
                self._queue.task_done()

    async def _deliver(self, entry: AuditEntry) -> None:
        if self.gateway is None or not self.channel_id:
            logger.debug(f"Audit (no gateway): {entry.title} - {entry.description}")
            return
        await self.gateway.send_message(self.channel_id, entry.to_message())
        self.sent += 1
        monitor.record_audit("sent")
