"""Text and timestamp formatting shared by embeds and the store."""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from core.constants import VALID_BADGES


_SLUG_RE = re.compile(r"[^a-z0-9]+")


def truncate(value: Optional[str], length: int, empty: str = "Not set.") -> str:
    """Shorten ``value`` to ``length`` characters, ending with ``...``."""
    if not value:
        return empty
    if len(value) <= length:
        return value
    return f"{value[:max(0, length - 3)].rstrip()}..."


def parse_badges(value: Any) -> List[str]:
    """Decode a stored badge list into lowercase tags.

    Accepts a JSON string (as stored in sqlite) or an already decoded list.
    Unknown shapes decode to an empty list; duplicates are dropped keeping the
    first occurrence.
    """
    if isinstance(value, (str, bytes)):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    if not isinstance(value, list):
        return []

    badges: List[str] = []
    for item in value:
        if not isinstance(item, str):
            continue
        badge = item.strip().lower()
        if badge and badge not in badges:
            badges.append(badge)
    return badges


def known_badges(value: Any) -> List[str]:
    return [badge for badge in parse_badges(value) if badge in VALID_BADGES]


def format_badges(value: Any) -> str:
    badges = known_badges(value)
    if not badges:
        return "None"
    return ", ".join(badge.capitalize() for badge in badges)


def format_badge_list(badges: Iterable[str]) -> str:
    items = list(badges)
    return ", ".join(items) if items else "None"


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """Render a UTC timestamp the way the store writes ``created_at``.

    Millisecond precision with a ``Z`` suffix keeps lexical order equal to
    chronological order.
    """
    moment = (moment or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    text = value.strip().replace(" ", "T", 1)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_date(value: Optional[str]) -> str:
    parsed = parse_timestamp(value)
    if parsed is None:
        return "Unknown"
    hour = parsed.hour % 12 or 12
    suffix = "AM" if parsed.hour < 12 else "PM"
    return f"{parsed:%b} {parsed.day}, {parsed.year}, {hour}:{parsed:%M} {suffix} UTC"


def slugify(value: str, max_length: int = 20, fallback: str = "user") -> str:
    slug = _SLUG_RE.sub("-", value.strip().lower()).strip("-")[:max_length].strip("-")
    return slug or fallback


_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding needs a non-negative integer")
    digits = []
    while True:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
        if value == 0:
            break
    return "".join(reversed(digits))
