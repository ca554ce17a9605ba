# services/booking-service/src/apps/core/services/__init__.py
"""
Booking Policy Service Business Logic
"""

from .config_resolver import ConfigResolver, EffectiveRuleConfig
from .rate_limiter import RateLimiter, RateLimitStatus
from .strike_service import StrikeTracker
from .context_builder import ContextBuilder, facility_now, facility_timezone
from .evaluator import Evaluator
from .reservation_guard import ReservationGuard
from .policy_engine import PolicyEngine, CommitResult, CancellationDecision
from .rule_config_service import RuleConfigService
from .tier_service import TierService
from .household_service import HouseholdService


# Custom Exceptions
class PolicyServiceError(Exception):
    """Base exception for booking policy errors."""
    pass


class UnknownRuleError(PolicyServiceError):
    """Rule code is not in the catalog."""
    pass


class RuleConfigurationError(PolicyServiceError):
    """Rule configuration failed validation."""

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.field = field


class ContextUnavailableError(PolicyServiceError):
    """Facility, court or reservation data could not be read."""
    pass


class ReservationConflictError(PolicyServiceError):
    """Reservation lost a race for its slot."""
    pass


class ReservationNotFoundError(PolicyServiceError):
    """Reservation not found."""
    pass


class TierConfigurationError(PolicyServiceError):
    """Tier operation failed."""
    pass


class HouseholdError(PolicyServiceError):
    """Household operation failed."""
    pass


class HouseholdCapacityError(HouseholdError):
    """Household is at its member cap."""
    pass


class StrikeError(PolicyServiceError):
    """Strike operation failed."""
    pass


class AdminOverrideError(PolicyServiceError):
    """Override attempted by a non-admin or without a reason."""
    pass


__all__ = [
    # Services
    'ConfigResolver',
    'EffectiveRuleConfig',
    'RateLimiter',
    'RateLimitStatus',
    'StrikeTracker',
    'ContextBuilder',
    'facility_now',
    'facility_timezone',
    'Evaluator',
    'ReservationGuard',
    'PolicyEngine',
    'CommitResult',
    'CancellationDecision',
    'RuleConfigService',
    'TierService',
    'HouseholdService',

    # Exceptions
    'PolicyServiceError',
    'UnknownRuleError',
    'RuleConfigurationError',
    'ContextUnavailableError',
    'ReservationConflictError',
    'ReservationNotFoundError',
    'TierConfigurationError',
    'HouseholdError',
    'HouseholdCapacityError',
    'StrikeError',
    'AdminOverrideError',
]
