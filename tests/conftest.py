"""Pytest configuration and fixtures."""

from __future__ import annotations

import itertools
import json
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple

import pytest
import pytest_asyncio

from bot.gateway import ChannelInfo
from bot.replies import Message
from config import Config
from core.constants import TicketDefaults
from core.exceptions import GatewayError
from database import SQLitePool, init_db_pool, run_migrations
from services.audit_service import AuditLogger
from services.presence import RawPresence

GUILD_ID = "100000000000000001"
LOG_CHANNEL_ID = "110000000000000001"
FEED_CHANNEL_ID = "110000000000000002"
PROMPT_CHANNEL_ID = "110000000000000003"
CATEGORY_ID = "120000000000000001"
PREMIUM_ROLE_ID = "130000000000000001"
STAFF_ROLE_ID = "130000000000000002"
SUPPORT_ROLE_ID = "130000000000000003"

STAFF_USER_ID = "200000000000000001"
OTHER_STAFF_USER_ID = "200000000000000002"
BUYER_USER_ID = "200000000000000003"


def make_config(**overrides) -> Config:
    config = Config(
        bot_token="test-token",
        guild_id=GUILD_ID,
        application_id="140000000000000001",
        environment="test",
        debug=False,
        enable_bot=True,
        site_url="https://atlas.test",
        appeal_url="https://discord.gg/atlas",
        premium_ticket_url="https://discord.gg/atlas-premium",
        bot_log_channel_id=LOG_CHANNEL_ID,
        handle_create_log_channel_id=FEED_CHANNEL_ID,
        premium_ticket_channel_id=PROMPT_CHANNEL_ID,
        premium_ticket_category_id=CATEGORY_ID,
        premium_command_role_ids=(PREMIUM_ROLE_ID,),
        premium_ticket_role_ids=(STAFF_ROLE_ID, SUPPORT_ROLE_ID),
        web_host="127.0.0.1",
        web_port=0,
        database_path=":memory:",
        db_pool_size=2,
        db_busy_timeout=1000,
        log_folder="logs",
        handle_feed_enabled=True,
        handle_feed_interval=15.0,
        handle_feed_batch_size=50,
        handle_feed_backoff_base=30.0,
        handle_feed_backoff_max=300.0,
        audit_queue_size=100,
        audit_rate_limit=100,
    )
    return replace(config, **overrides) if overrides else config


class FakeGateway:
    """In-memory stand-in for the Discord gateway adapter."""

    def __init__(self) -> None:
        self.latency = 0.042
        self.sent: List[Tuple[str, Message]] = []
        self.member_roles: Dict[str, Sequence[str]] = {}
        self.channels: Dict[str, ChannelInfo] = {}
        self.created: List[dict] = []
        self.deleted: List[Tuple[str, str]] = []
        self.presences: Dict[str, RawPresence] = {}
        self.role_fetches = 0
        self.fail_send = False
        self.fail_send_to: set = set()
        self.fail_create = False
        self.fail_topic = False
        self.fail_delete = False
        self.fail_presence = False
        self._ids = itertools.count(300000000000000001)

    def add_ticket_channel(
        self,
        channel_id: str,
        topic: Optional[str] = None,
        parent_id: str = CATEGORY_ID,
        is_text: bool = True,
    ) -> ChannelInfo:
        if topic is None:
            topic = f"{TicketDefaults.TOPIC_PREFIX} | user:{BUYER_USER_ID} | handle:@buyer | claimed_by:none"
        channel = ChannelInfo(id=channel_id, name="premium-buyer-abcd", parent_id=parent_id, topic=topic, is_text=is_text)
        self.channels[channel_id] = channel
        return channel

    def messages_to(self, channel_id: str) -> List[Message]:
        return [message for target, message in self.sent if target == channel_id]

    async def send_message(self, channel_id: str, message: Message) -> None:
        if self.fail_send or channel_id in self.fail_send_to:
            raise GatewayError(f"Send to {channel_id} failed: Missing Access")
        self.sent.append((channel_id, message))

    async def fetch_member_role_ids(self, guild_id: str, user_id: str) -> Sequence[str]:
        self.role_fetches += 1
        return tuple(self.member_roles.get(user_id, ()))

    async def fetch_channel(self, channel_id: str) -> Optional[ChannelInfo]:
        return self.channels.get(channel_id)

    async def create_ticket_channel(
        self,
        guild_id: str,
        name: str,
        category_id: str,
        topic: str,
        staff_role_ids: Sequence[str],
        requester_id: str,
        reason: str,
    ) -> ChannelInfo:
        if self.fail_create:
            raise GatewayError("Ticket channel create failed: Missing Permissions")
        channel = ChannelInfo(id=str(next(self._ids)), name=name, parent_id=category_id, topic=topic)
        self.channels[channel.id] = channel
        self.created.append({
            "guild_id": guild_id,
            "name": name,
            "category_id": category_id,
            "topic": topic,
            "staff_role_ids": tuple(staff_role_ids),
            "requester_id": requester_id,
            "reason": reason,
        })
        return channel

    async def set_channel_topic(self, channel_id: str, topic: str) -> None:
        if self.fail_topic:
            raise GatewayError(f"Topic update for {channel_id} failed: rate limited")
        self.channels[channel_id] = replace(self.channels[channel_id], topic=topic)

    async def delete_channel(self, channel_id: str, reason: str) -> None:
        if self.fail_delete:
            raise GatewayError(f"Channel delete for {channel_id} failed: Missing Permissions")
        self.deleted.append((channel_id, reason))
        self.channels.pop(channel_id, None)

    async def fetch_presence(self, guild_id: str, user_id: str) -> Optional[RawPresence]:
        if self.fail_presence:
            raise GatewayError("Guild is unavailable")
        return self.presences.get(user_id)


@pytest.fixture
def config() -> Config:
    return make_config()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def audit(gateway) -> AuditLogger:
    """Audit logger whose queue is inspected directly; no worker runs."""
    return AuditLogger(gateway, LOG_CHANNEL_ID, queue_size=100, rate_limit=100)


def queued_audit_titles(audit: AuditLogger) -> List[str]:
    return [entry.title for entry in list(audit._queue._queue)]


@pytest_asyncio.fixture
async def db_pool(tmp_path):
    pool = await init_db_pool(str(tmp_path / "atlas.sqlite"), pool_size=2, busy_timeout_ms=1000)
    await run_migrations(pool)
    yield pool
    await pool.close()


async def insert_profile(
    pool: SQLitePool,
    account_id: str,
    handle: str,
    *,
    display_name: Optional[str] = None,
    badges: Sequence[str] = (),
    discord_user_id: Optional[str] = None,
    created_at: Optional[str] = None,
    bio: Optional[str] = None,
) -> None:
    columns = ["id", "handle", "display_name", "badges", "discord_user_id", "bio"]
    values = [account_id, handle, display_name, json.dumps(list(badges)), discord_user_id, bio]
    if created_at is not None:
        columns.append("created_at")
        values.append(created_at)
    placeholders = ", ".join("?" for _ in columns)
    async with pool.connection() as conn:
        await conn.execute(f"INSERT INTO profiles ({', '.join(columns)}) VALUES ({placeholders})", values)
        await conn.commit()


async def make_admin(pool: SQLitePool, account_id: str) -> None:
    async with pool.connection() as conn:
        await conn.execute("INSERT INTO admin_users (user_id) VALUES (?)", (account_id,))
        await conn.commit()
