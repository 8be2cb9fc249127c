"""Bot initialization module."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Tuple

from core.logger import get_logger
from database.repositories import AccountRepository, StatsRepository, SyncStateRepository
from services.access_control import AccessControl
from services.audit_service import AuditLogger
from services.entitlement_service import EntitlementService
from services.handle_feed import HandleFeedPoller
from services.lookup_service import LookupService
from services.tickets import TicketLifecycleManager
from .deps import BotDeps
from .dispatcher import Dispatcher
from .handlers import setup_handlers

if TYPE_CHECKING:
    from config import Config
    from database.connection import SQLitePool
    from .client import AtlasBot
    from .gateway import Gateway

logger = get_logger(__name__)


def build_dispatcher(
    config: "Config",
    gateway: Optional["Gateway"],
    pool: "SQLitePool",
    audit: AuditLogger,
) -> Tuple[Dispatcher, BotDeps]:
    """Wire services and register every handler on a fresh dispatcher."""
    accounts = AccountRepository(pool)
    lookups = LookupService(accounts, StatsRepository(pool))
    access = AccessControl(gateway)
    deps = BotDeps(
        config=config,
        gateway=gateway,
        access=access,
        lookups=lookups,
        entitlements=EntitlementService(accounts),
        tickets=TicketLifecycleManager(config, gateway, access, lookups, audit),
        audit=audit,
    )
    dispatcher = Dispatcher(lookups, access, audit, connect_url=config.connect_url)
    setup_handlers(dispatcher, deps)
    return dispatcher, deps


class BotInitializer:
    """Builds the client, gateway adapter and the services that need them."""

    def __init__(self, config: "Config", pool: "SQLitePool"):
        self.config = config
        self.pool = pool
        self.audit: Optional[AuditLogger] = None
        self.poller: Optional[HandleFeedPoller] = None
        self.gateway: Optional["Gateway"] = None

    async def initialize(self) -> "AtlasBot":
        from .client import AtlasBot
        from .gateway import DiscordGateway

        bot = AtlasBot(self.config)
        self.gateway = DiscordGateway(bot)

        self.audit = AuditLogger(
            self.gateway,
            self.config.bot_log_channel_id,
            queue_size=self.config.audit_queue_size,
            rate_limit=self.config.audit_rate_limit,
        )

        dispatcher, _ = build_dispatcher(self.config, self.gateway, self.pool, self.audit)
        bot.attach(dispatcher)
        logger.info(f"✅ {len(dispatcher.commands)} commands registered with the dispatcher")

        if self.config.handle_feed_enabled and self.config.handle_create_log_channel_id:
            self.poller = HandleFeedPoller(
                AccountRepository(self.pool),
                self.gateway,
                self.config.handle_create_log_channel_id,
                self.config.site_url,
                SyncStateRepository(self.pool),
                interval=self.config.handle_feed_interval,
                batch_size=self.config.handle_feed_batch_size,
                backoff_base=self.config.handle_feed_backoff_base,
                backoff_max=self.config.handle_feed_backoff_max,
            )
            logger.info("✅ Handle feed configured")
        else:
            logger.info("Handle feed disabled")

        return bot
