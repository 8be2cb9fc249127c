"""Application-wide constants and configuration values."""

from __future__ import annotations

from enum import Enum


# Discord limits
class DiscordLimits:
    """Discord API limits."""
    EMBED_FIELD_VALUE = 1024
    EMBED_DESCRIPTION = 4096
    EMBED_FIELDS = 25
    CHANNEL_TOPIC = 1024
    CHANNEL_NAME = 90
    AUDIT_REASON = 512


# Embed colors
class Colors:
    """Embed accent colors."""
    BRAND = 0xC5BFB5
    SUCCESS = 0x7E9382
    WARNING = 0xB59B6F
    ERROR = 0xB86A6A


# Handle-create feed (CDC poller)
class HandleFeedDefaults:
    """Default values for the new-account notification feed."""
    POLL_INTERVAL = 15.0  # seconds
    BATCH_SIZE = 50
    MAX_QUERY_RETRIES = 3
    RETRY_BASE_DELAY = 0.5  # seconds, multiplied by attempt number
    BACKOFF_BASE = 30.0  # seconds
    BACKOFF_MAX = 300.0  # seconds
    FAILURE_LOG_THROTTLE = 60.0  # seconds
    CURSOR_KEY = "handle_feed_cursor"


# Audit log channel
class AuditDefaults:
    """Best-effort audit logger configuration."""
    QUEUE_SIZE = 500
    RATE_LIMIT = 5  # messages per period
    RATE_PERIOD = 1.0  # seconds
    FIELD_LIMIT = 25


# Handles
class HandleRules:
    """Account handle format."""
    PATTERN = r"^[a-z0-9_]{3,20}$"
    MIN_LENGTH = 3
    MAX_LENGTH = 20
    DISCORD_ID_PATTERN = r"^[0-9]{17,20}$"


# Premium plan
class PremiumPlan:
    """The single purchasable plan."""
    NAME = "Atlas Pro Lifetime"
    PRICE_USD = 10
    BADGE = "pro"


class PaymentMethod(str, Enum):
    """Accepted manual payment methods."""
    VENMO = "venmo"
    PAYPAL = "paypal"
    CASHAPP = "cashapp"


class Badge(str, Enum):
    """Account badge vocabulary."""
    OWNER = "owner"
    ADMIN = "admin"
    STAFF = "staff"
    VERIFIED = "verified"
    PRO = "pro"
    FOUNDER = "founder"


VALID_BADGES: frozenset[str] = frozenset(badge.value for badge in Badge)


# Status enums
class TicketState(str, Enum):
    """Premium ticket lifecycle."""
    OPEN = "open"
    CLAIMED = "claimed"
    CLOSED = "closed"


class PresenceStatus(str, Enum):
    """Normalized gateway presence status."""
    ONLINE = "online"
    IDLE = "idle"
    DND = "dnd"
    OFFLINE = "offline"


# Tickets
class TicketDefaults:
    """Premium ticket configuration."""
    TOPIC_PREFIX = "Atlas premium ticket"
    CHANNEL_PREFIX = "premium"
    DEFAULT_CLOSE_REASON = "No reason provided."
    BUTTON_CLOSE_REASON = "Closed from ticket button."
    CLOSE_REASON_DISPLAY = 500
    PAYMENT_TAG_DISPLAY = 180
    NOTES_DISPLAY = 500
    BIO_DISPLAY = 280


# Stable component ids
class CustomIds:
    """Opaque ids for buttons and modals; changing them orphans old messages."""
    PREMIUM_MODAL = "atlas_premium_ticket_v1"
    OPEN_TICKET_BUTTON = "atlas_premium_open_ticket_v1"
    CLAIM_TICKET_BUTTON = "atlas_ticket_claim_v1"
    CLOSE_TICKET_BUTTON = "atlas_ticket_close_v1"
    HANDLE_FIELD = "atlas_handle"
    PAYMENT_METHOD_FIELD = "payment_method"
    PAYMENT_TAG_FIELD = "payment_tag"
    NOTES_FIELD = "notes"


COMMAND_SET_VERSION = "2026-02-14-v4"
