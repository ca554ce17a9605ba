# services/booking-service/src/apps/core/models/__init__.py
"""
Booking Policy Service Models
"""

from .facility import Facility, FacilityAdmin
from .court import Court, CourtOperatingConfig, CourtBlackout
from .rule_config import FacilityRuleConfig
from .membership import MembershipTier, UserTier
from .household import Household, HouseholdMember, normalize_address
from .reservation import Reservation, BookingCancellation, CourtDayLock, AccountBookingLock
from .strike import Strike
from .rate_limit import RateLimitAction

__all__ = [
    'Facility',
    'FacilityAdmin',
    'Court',
    'CourtOperatingConfig',
    'CourtBlackout',
    'FacilityRuleConfig',
    'MembershipTier',
    'UserTier',
    'Household',
    'HouseholdMember',
    'normalize_address',
    'Reservation',
    'BookingCancellation',
    'CourtDayLock',
    'AccountBookingLock',
    'Strike',
    'RateLimitAction',
]
