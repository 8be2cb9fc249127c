"""Buttons and modals with stable custom ids."""

from __future__ import annotations

from typing import List

from core.constants import CustomIds
from .replies import Button, ButtonStyle, Modal, TextField


def premium_modal() -> Modal:
    return Modal(
        custom_id=CustomIds.PREMIUM_MODAL,
        title="Buy Atlas Pro",
        fields=(
            TextField(
                custom_id=CustomIds.HANDLE_FIELD,
                label="Atlas Handle (optional)",
                placeholder="@yourhandle",
                required=False,
                max_length=32,
            ),
            TextField(
                custom_id=CustomIds.PAYMENT_METHOD_FIELD,
                label="Payment Method",
                placeholder="venmo / paypal / cashapp",
                max_length=30,
            ),
            TextField(
                custom_id=CustomIds.PAYMENT_TAG_FIELD,
                label="Payment Username/Tag",
                placeholder="@username, $cashtag, or PayPal email",
                max_length=120,
            ),
            TextField(
                custom_id=CustomIds.NOTES_FIELD,
                label="Extra Notes (optional)",
                placeholder="Anything staff should know before sending payment instructions.",
                required=False,
                long=True,
                max_length=400,
            ),
        ),
    )


def open_ticket_buttons() -> List[Button]:
    return [Button(label="Open Ticket", custom_id=CustomIds.OPEN_TICKET_BUTTON, style=ButtonStyle.PRIMARY)]


def ticket_action_buttons() -> List[Button]:
    return [
        Button(label="Claim Ticket", custom_id=CustomIds.CLAIM_TICKET_BUTTON, style=ButtonStyle.SECONDARY),
        Button(label="Close Ticket", custom_id=CustomIds.CLOSE_TICKET_BUTTON, style=ButtonStyle.DANGER),
    ]
