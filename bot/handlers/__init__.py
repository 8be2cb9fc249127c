"""Aggregate bot handlers for dispatch registration."""

from .account import AccountHandlers
from .general import GeneralHandlers
from .premium import PremiumHandlers
from .tickets import TicketHandlers

__all__ = [
    "AccountHandlers",
    "GeneralHandlers",
    "PremiumHandlers",
    "TicketHandlers",
    "setup_handlers",
]


def setup_handlers(dispatcher, deps) -> None:
    """Register every handler group; order is the slash-command listing order."""
    general = GeneralHandlers(deps)
    premium = PremiumHandlers(deps)
    tickets = TicketHandlers(deps)
    account = AccountHandlers(deps)

    general.setup(dispatcher)
    premium.setup(dispatcher)
    tickets.setup(dispatcher)
    account.setup(dispatcher)
