"""Input validation helpers."""

from __future__ import annotations

import re
from typing import Optional

from core.constants import HandleRules, PaymentMethod


HANDLE_RE = re.compile(HandleRules.PATTERN)
DISCORD_ID_RE = re.compile(HandleRules.DISCORD_ID_PATTERN)
_PAYMENT_SEPARATORS_RE = re.compile(r"[\s_-]+")


def normalize_handle(value: Optional[str]) -> str:
    """Trim, drop leading ``@`` characters and lowercase a handle."""
    if not value:
        return ""
    return value.strip().lstrip("@").strip().lower()


def is_valid_handle(value: Optional[str]) -> bool:
    return bool(value and HANDLE_RE.fullmatch(value))


def is_discord_user_id(value: Optional[str]) -> bool:
    """Discord snowflakes are 17-20 digit numeric strings."""
    return bool(value and DISCORD_ID_RE.fullmatch(value))


def normalize_payment_method(value: Optional[str]) -> Optional[PaymentMethod]:
    """Map free text like ``Cash App`` or ``pay-pal`` onto a payment method."""
    if not value:
        return None
    normalized = _PAYMENT_SEPARATORS_RE.sub("", value.strip().lower())
    try:
        return PaymentMethod(normalized)
    except ValueError:
        return None


def format_payment_methods() -> str:
    return ", ".join(method.value.upper() for method in PaymentMethod)
