"""Application configuration module.

Reads settings from environment variables with defaults matching the
production Atlas guild. Channel, category and role ids are Discord snowflakes
kept as strings end to end.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from core.constants import AuditDefaults, HandleFeedDefaults
from core.exceptions import ConfigurationError
from utils.validators import is_discord_user_id

# Load environment variables from .env file
load_dotenv()


def _get_bool(name: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(name: str, default: int) -> int:
    """Get integer from environment variable with fallback."""
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    """Get float from environment variable with fallback."""
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_str(name: str, default: str = "") -> str:
    """Get string from environment variable."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip()


def _parse_id_list(name: str, value: str) -> tuple[str, ...]:
    """Parse comma-separated snowflake ids; blank entries are skipped."""
    if not value:
        return ()
    ids = tuple(item.strip() for item in value.split(",") if item.strip())
    invalid = [item for item in ids if not is_discord_user_id(item)]
    if invalid:
        raise ConfigurationError(f"{name} contains invalid Discord ids: {', '.join(invalid)}")
    return ids


@dataclass(frozen=True)
class Config:
    bot_token: str
    guild_id: str
    application_id: str
    environment: str
    debug: bool
    enable_bot: bool
    site_url: str
    appeal_url: str
    premium_ticket_url: str
    bot_log_channel_id: str
    handle_create_log_channel_id: str
    premium_ticket_channel_id: str
    premium_ticket_category_id: str
    premium_command_role_ids: tuple[str, ...]
    premium_ticket_role_ids: tuple[str, ...]
    web_host: str
    web_port: int
    database_path: str
    db_pool_size: int
    db_busy_timeout: int
    log_folder: str
    handle_feed_enabled: bool
    handle_feed_interval: float
    handle_feed_batch_size: int
    handle_feed_backoff_base: float
    handle_feed_backoff_max: float
    audit_queue_size: int
    audit_rate_limit: int

    @property
    def bot_configured(self) -> bool:
        return bool(self.enable_bot and self.bot_token and self.guild_id)

    @property
    def connect_url(self) -> str:
        return f"{self.site_url}/api/integrations/discord/connect"

    def profile_url(self, handle: str) -> str:
        return f"{self.site_url}/@{handle}"


def load_config() -> Config:
    """Load application configuration from environment variables.

    Returns:
        Config: Application configuration with validated values

    Raises:
        ConfigurationError: A role id list holds a non-snowflake entry or the
            feed interval is not positive.
    """
    site_url = _get_str("SITE_URL", "https://atlas.lol").rstrip("/")
    appeal_url = _get_str("DISCORD_APPEAL_URL", "https://discord.gg/")
    ticket_role_ids = _parse_id_list("PREMIUM_TICKET_ROLE_IDS", _get_str(
        "PREMIUM_TICKET_ROLE_IDS",
        "1463881284215509287,1463881285557551217,1463881287298453645",
    ))

    config = Config(
        bot_token=_get_str("DISCORD_BOT_TOKEN"),
        guild_id=_get_str("DISCORD_PRESENCE_GUILD_ID"),
        application_id=_get_str("DISCORD_CLIENT_ID") or _get_str("DISCORD_APPLICATION_ID"),
        environment=_get_str("ENVIRONMENT", "development"),
        debug=_get_bool("DEBUG", False),
        enable_bot=_get_bool("ENABLE_BOT", True),
        site_url=site_url,
        appeal_url=appeal_url,
        premium_ticket_url=_get_str("DISCORD_PREMIUM_TICKET_URL") or appeal_url,
        bot_log_channel_id=_get_str("BOT_LOG_CHANNEL_ID", "1463878783043113021"),
        handle_create_log_channel_id=_get_str("HANDLE_CREATE_LOG_CHANNEL_ID", "1463878741607579749"),
        premium_ticket_channel_id=_get_str("PREMIUM_TICKET_CHANNEL_ID", "1463878773010337793"),
        premium_ticket_category_id=_get_str("PREMIUM_TICKET_CATEGORY_ID", "1464083675254620332"),
        premium_command_role_ids=_parse_id_list(
            "PREMIUM_COMMAND_ROLE_IDS",
            _get_str("PREMIUM_COMMAND_ROLE_IDS", "1463881284215509287"),
        ),
        premium_ticket_role_ids=ticket_role_ids,
        web_host=_get_str("WEB_HOST", "0.0.0.0"),
        web_port=_get_int("PORT", _get_int("WEB_PORT", 8080)),
        database_path=_get_str("DATABASE_PATH", "data/atlas.sqlite"),
        db_pool_size=_get_int("DB_POOL_SIZE", 5),
        db_busy_timeout=_get_int("DB_BUSY_TIMEOUT", 5000),
        log_folder=_get_str("LOG_FOLDER", "logs"),
        handle_feed_enabled=_get_bool("HANDLE_FEED_ENABLED", True),
        handle_feed_interval=_get_float("HANDLE_FEED_INTERVAL", HandleFeedDefaults.POLL_INTERVAL),
        handle_feed_batch_size=_get_int("HANDLE_FEED_BATCH_SIZE", HandleFeedDefaults.BATCH_SIZE),
        handle_feed_backoff_base=_get_float("HANDLE_FEED_BACKOFF_BASE", HandleFeedDefaults.BACKOFF_BASE),
        handle_feed_backoff_max=_get_float("HANDLE_FEED_BACKOFF_MAX", HandleFeedDefaults.BACKOFF_MAX),
        audit_queue_size=_get_int("AUDIT_QUEUE_SIZE", AuditDefaults.QUEUE_SIZE),
        audit_rate_limit=_get_int("AUDIT_RATE_LIMIT", AuditDefaults.RATE_LIMIT),
    )

    if config.handle_feed_interval <= 0:
        raise ConfigurationError(f"HANDLE_FEED_INTERVAL must be positive, got {config.handle_feed_interval}")

    return config
