"""Services shared by the interaction handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from config import Config
from services.access_control import AccessControl
from services.audit_service import AuditLogger
from services.entitlement_service import EntitlementService
from services.lookup_service import LookupService
from services.tickets import TicketLifecycleManager

if TYPE_CHECKING:
    from .gateway import Gateway


@dataclass
class BotDeps:
    config: Config
    gateway: Optional["Gateway"]
    access: AccessControl
    lookups: LookupService
    entitlements: EntitlementService
    tickets: TicketLifecycleManager
    audit: AuditLogger

    @property
    def site(self) -> str:
        return self.config.site_url

    @property
    def premium_roles(self):
        return tuple(self.config.premium_command_role_ids)
