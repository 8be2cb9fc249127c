"""Core application components."""

from core.logger import setup_logger, get_logger
from core.constants import (
    DiscordLimits,
    Colors,
    HandleFeedDefaults,
    AuditDefaults,
    HandleRules,
    PremiumPlan,
    PaymentMethod,
    Badge,
    TicketState,
    PresenceStatus,
    TicketDefaults,
    CustomIds,
    COMMAND_SET_VERSION,
)
from core.exceptions import (
    ApplicationError,
    ConfigurationError,
    ValidationError,
    AuthorizationError,
    NotFoundError,
    DatabaseError,
    TransientInfraError,
    SchemaMismatchError,
    GatewayError,
    is_transient_error,
)

__all__ = [
    # Logging
    'setup_logger',
    'get_logger',
    # Constants
    'DiscordLimits',
    'Colors',
    'HandleFeedDefaults',
    'AuditDefaults',
    'HandleRules',
    'PremiumPlan',
    'PaymentMethod',
    'Badge',
    'TicketState',
    'PresenceStatus',
    'TicketDefaults',
    'CustomIds',
    'COMMAND_SET_VERSION',
    # Exceptions
    'ApplicationError',
    'ConfigurationError',
    'ValidationError',
    'AuthorizationError',
    'NotFoundError',
    'DatabaseError',
    'TransientInfraError',
    'SchemaMismatchError',
    'GatewayError',
    'is_transient_error',
]
