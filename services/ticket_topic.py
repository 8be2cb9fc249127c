"""Encode/decode of premium ticket metadata stored in the channel topic.

Grammar::

    topic   := segment (" | " segment)*
    segment := key ":" value | text
    key     := "user" | "handle" | "claimed_by"

``claimed_by`` holds a 17-20 digit user id or ``none``. Unknown segments are
preserved in order after the known keys. Rendered topics never exceed the
channel topic limit; the handle label is shortened first.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from core.constants import DiscordLimits, TicketDefaults, TicketState

SEPARATOR = " | "
CLAIMED_BY_RE = re.compile(r"^([0-9]{17,20}|none)$", re.IGNORECASE)
_SEGMENT_RE = re.compile(r"^(user|handle|claimed_by)\s*:\s*(.*)$", re.IGNORECASE)


def _decode_claimed_by(value: str) -> Optional[str]:
    match = CLAIMED_BY_RE.match(value.strip())
    if not match or match.group(1).lower() == "none":
        return None
    return match.group(1)


@dataclass(frozen=True)
class TicketTopic:
    prefix: str = TicketDefaults.TOPIC_PREFIX
    requester_id: Optional[str] = None
    handle: Optional[str] = None
    claimed_by: Optional[str] = None
    extra: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, topic: Optional[str]) -> "TicketTopic":
        if not topic or not topic.strip():
            return cls()

        segments = [segment.strip() for segment in topic.split("|")]
        segments = [segment for segment in segments if segment]

        prefix = TicketDefaults.TOPIC_PREFIX
        fields = {}
        extra = []
        for index, segment in enumerate(segments):
            match = _SEGMENT_RE.match(segment)
            if match:
                key = match.group(1).lower()
                if key not in fields:
                    fields[key] = match.group(2).strip()
                continue
            if index == 0:
                prefix = segment
            else:
                extra.append(segment)

        return cls(
            prefix=prefix,
            requester_id=fields.get("user") or None,
            handle=fields.get("handle") or None,
            claimed_by=_decode_claimed_by(fields.get("claimed_by", "")),
            extra=tuple(extra),
        )

    def _segments(self, handle: Optional[str]) -> list:
        segments = [self.prefix]
        if self.requester_id:
            segments.append(f"user:{self.requester_id}")
        if handle:
            segments.append(f"handle:{handle}")
        segments.append(f"claimed_by:{self.claimed_by or 'none'}")
        segments.extend(self.extra)
        return segments

    def render(self) -> str:
        handle = (self.handle or "").replace("|", "/").strip() or None
        topic = SEPARATOR.join(self._segments(handle))
        overflow = len(topic) - DiscordLimits.CHANNEL_TOPIC
        if overflow > 0 and handle:
            handle = handle[: max(0, len(handle) - overflow)].rstrip() or None
            topic = SEPARATOR.join(self._segments(handle))
        return topic[: DiscordLimits.CHANNEL_TOPIC]

    def with_claim(self, user_id: Optional[str]) -> "TicketTopic":
        return replace(self, claimed_by=user_id)

    @property
    def is_claimed(self) -> bool:
        return self.claimed_by is not None

    @property
    def state(self) -> TicketState:
        # Closed tickets have no channel left to carry a topic.
        return TicketState.CLAIMED if self.is_claimed else TicketState.OPEN


def build_topic(requester_id: str, handle_label: str) -> str:
    return TicketTopic(requester_id=requester_id, handle=handle_label).render()


def write_claimed_by(topic: Optional[str], user_id: Optional[str]) -> str:
    return TicketTopic.parse(topic).with_claim(user_id).render()
