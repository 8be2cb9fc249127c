"""Tests for environment-driven configuration and command registration."""

from types import SimpleNamespace

import pytest

from bot.commands import CommandRegistrar
from config import load_config
from core.exceptions import ConfigurationError


def test_defaults(monkeypatch):
    for name in ("DISCORD_BOT_TOKEN", "SITE_URL", "PREMIUM_TICKET_ROLE_IDS", "HANDLE_FEED_INTERVAL", "PORT"):
        monkeypatch.delenv(name, raising=False)

    config = load_config()

    assert config.site_url == "https://atlas.lol"
    assert config.connect_url == "https://atlas.lol/api/integrations/discord/connect"
    assert len(config.premium_ticket_role_ids) == 3
    assert config.handle_feed_interval == 15.0
    assert not config.bot_configured


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SITE_URL", "https://staging.atlas.lol/")
    monkeypatch.setenv("PREMIUM_TICKET_ROLE_IDS", " 111111111111111111 , ,222222222222222222")
    monkeypatch.setenv("HANDLE_FEED_BATCH_SIZE", "not-a-number")
    monkeypatch.setenv("DEBUG", "yes")
    monkeypatch.setenv("DISCORD_BOT_TOKEN", "token")
    monkeypatch.setenv("DISCORD_PRESENCE_GUILD_ID", "100000000000000001")

    config = load_config()

    assert config.site_url == "https://staging.atlas.lol"
    assert config.profile_url("alice") == "https://staging.atlas.lol/@alice"
    assert config.premium_ticket_role_ids == ("111111111111111111", "222222222222222222")
    assert config.handle_feed_batch_size == 50
    assert config.debug is True
    assert config.bot_configured


def test_malformed_role_ids_are_rejected(monkeypatch):
    monkeypatch.setenv("PREMIUM_TICKET_ROLE_IDS", "111111111111111111,staff")

    with pytest.raises(ConfigurationError) as exc:
        load_config()

    assert "PREMIUM_TICKET_ROLE_IDS" in str(exc.value)
    assert "staff" in str(exc.value)


def test_non_positive_feed_interval_is_rejected(monkeypatch):
    monkeypatch.delenv("PREMIUM_TICKET_ROLE_IDS", raising=False)
    monkeypatch.delenv("PREMIUM_COMMAND_ROLE_IDS", raising=False)
    monkeypatch.setenv("HANDLE_FEED_INTERVAL", "0")

    with pytest.raises(ConfigurationError):
        load_config()


class RecordingHttp:
    def __init__(self):
        self.calls = []

    async def bulk_upsert_guild_commands(self, application_id, guild_id, payload):
        self.calls.append((application_id, guild_id, payload))
        return payload


@pytest.mark.asyncio
async def test_registrar_upserts_once_per_version():
    client = SimpleNamespace(application_id=140000000000000001, http=RecordingHttp())
    payload = [{"name": "ping", "description": "Check Atlas bot latency", "type": 1}]

    registrar = CommandRegistrar(version="v1")
    assert await registrar.ensure(client, "100000000000000001", payload) is True
    assert await registrar.ensure(client, "100000000000000001", payload) is False
    assert client.http.calls == [(140000000000000001, 100000000000000001, payload)]

    bumped = CommandRegistrar(version="v2")
    assert await bumped.ensure(client, "100000000000000001", payload) is True
    assert len(client.http.calls) == 2


@pytest.mark.asyncio
async def test_registrar_waits_for_application_id():
    client = SimpleNamespace(application_id=None, http=RecordingHttp())
    registrar = CommandRegistrar(version="v1")
    assert await registrar.ensure(client, "100000000000000001", []) is False
    assert not registrar.is_registered("100000000000000001")
