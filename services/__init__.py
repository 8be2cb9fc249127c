"""Services package.

Modules are imported directly (``from services.tickets import ...``) so the
bot layer and the services can reference each other without import cycles.
"""

__all__ = [
    "access_control",
    "audit_service",
    "entitlement_service",
    "handle_feed",
    "lookup_service",
    "presence",
    "ticket_topic",
    "tickets",
]
