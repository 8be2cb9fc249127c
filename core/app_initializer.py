"""Application initialization orchestrator."""

from __future__ import annotations

import asyncio
from contextlib import suppress
from typing import Optional

from aiohttp import web as aiohttp_web

from config import Config, load_config
from core.logger import get_logger
from database import init_db_pool, run_migrations
from services.presence import PresenceService

logger = get_logger(__name__)


class ApplicationInitializer:
    """Orchestrates application initialization and lifecycle."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or load_config()
        self.db_pool = None
        self.bot = None
        self.gateway = None
        self.audit = None
        self.poller = None
        self.web_runner = None
        self._poller_starter = None

    async def initialize(self) -> None:
        """Initialize all application components."""
        await self._init_database()

        if self._should_enable_bot():
            await self._init_bot()
        else:
            logger.info("Running without the Discord bot (presence endpoint serves offline snapshots)")

        await self._init_web_server()

    async def run(self) -> None:
        """Run the application."""
        if self.audit:
            await self.audit.start()

        bot_task = None
        if self.bot:
            bot_task = asyncio.create_task(self.bot.start(self.config.bot_token))
            logger.info("🤖 Discord bot starting")
            if self.poller:
                self._poller_starter = asyncio.create_task(self._start_poller_when_ready())

        try:
            if bot_task:
                await bot_task
            else:
                logger.info("⚡ Web-only mode: presence endpoint running...")
                while True:
                    await asyncio.sleep(1)
        except (KeyboardInterrupt, asyncio.CancelledError):
            logger.info("Shutting down...")
        finally:
            await self.cleanup()

    async def _start_poller_when_ready(self) -> None:
        await self.bot.ready_event.wait()
        self.poller.start()

    async def cleanup(self) -> None:
        """Cleanup resources."""
        if self._poller_starter and not self._poller_starter.done():
            self._poller_starter.cancel()
        with suppress(Exception):
            if self.poller:
                await self.poller.stop()
        with suppress(Exception):
            if self.audit:
                await self.audit.stop()
        with suppress(Exception):
            if self.bot and not self.bot.is_closed():
                await self.bot.close()
        with suppress(Exception):
            if self.web_runner:
                await self.web_runner.cleanup()
        with suppress(Exception):
            if self.db_pool:
                await self.db_pool.close()

    async def _init_database(self) -> None:
        """Initialize database pool and run migrations."""
        self.db_pool = await init_db_pool(
            database_path=self.config.database_path,
            pool_size=self.config.db_pool_size,
            busy_timeout_ms=self.config.db_busy_timeout,
        )
        await run_migrations(self.db_pool)
        logger.info("✅ Database initialized")

    def _should_enable_bot(self) -> bool:
        """Check if bot should be enabled."""
        return self.config.bot_configured and self.config.bot_token != "your_bot_token_here"

    async def _init_bot(self) -> None:
        """Initialize the Discord bot and the services bound to it."""
        try:
            from bot.initializer import BotInitializer
            bot_init = BotInitializer(self.config, self.db_pool)
            self.bot = await bot_init.initialize()
            self.gateway = bot_init.gateway
            self.audit = bot_init.audit
            self.poller = bot_init.poller
            logger.info("✅ Bot initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize bot: {e}", exc_info=True)
            logger.info("Continuing with web interface only...")
            self.bot = self.gateway = self.audit = self.poller = None

    async def _init_web_server(self) -> None:
        """Initialize web server."""
        from web.app import create_app

        presence = PresenceService(self.gateway, self.config.guild_id)
        app = create_app(presence, poller=self.poller, db_pool=self.db_pool)

        self.web_runner = aiohttp_web.AppRunner(app)
        await self.web_runner.setup()

        site = aiohttp_web.TCPSite(self.web_runner, self.config.web_host, self.config.web_port)
        await site.start()

        logger.info(f"🚀 Web server started on http://{self.config.web_host}:{self.config.web_port}")
