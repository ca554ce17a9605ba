# services/booking-service/src/apps/api/serializers/__init__.py
"""
Booking Policy API Serializers
"""

from .rule_serializers import (
    RuleDefinitionSerializer,
    EffectiveRuleSerializer,
    RuleConfigUpdateSerializer,
    BulkRuleConfigSerializer,
    PrimeTimeWindowsSerializer,
)

from .reservation_serializers import (
    ReservationSerializer,
    BookingRequestSerializer,
    OverrideBookingSerializer,
    ReservationCancelSerializer,
    BookingCancellationSerializer,
)

from .strike_serializers import (
    StrikeSerializer,
    StrikeIssueSerializer,
    StrikeRevokeSerializer,
    FacilityUserQuerySerializer,
)

from .tier_serializers import (
    MembershipTierSerializer,
    MembershipTierCreateSerializer,
    MembershipTierUpdateSerializer,
    UserTierSerializer,
    TierAssignSerializer,
    TierUnassignSerializer,
)

from .household_serializers import (
    HouseholdSerializer,
    HouseholdListSerializer,
    HouseholdCreateSerializer,
    HouseholdMemberSerializer,
    HouseholdMemberAddSerializer,
)


__all__ = [
    # Rules
    'RuleDefinitionSerializer',
    'EffectiveRuleSerializer',
    'RuleConfigUpdateSerializer',
    'BulkRuleConfigSerializer',
    'PrimeTimeWindowsSerializer',

    # Reservations
    'ReservationSerializer',
    'BookingRequestSerializer',
    'OverrideBookingSerializer',
    'ReservationCancelSerializer',
    'BookingCancellationSerializer',

    # Strikes
    'StrikeSerializer',
    'StrikeIssueSerializer',
    'StrikeRevokeSerializer',
    'FacilityUserQuerySerializer',

    # Tiers
    'MembershipTierSerializer',
    'MembershipTierCreateSerializer',
    'MembershipTierUpdateSerializer',
    'UserTierSerializer',
    'TierAssignSerializer',
    'TierUnassignSerializer',

    # Households
    'HouseholdSerializer',
    'HouseholdListSerializer',
    'HouseholdCreateSerializer',
    'HouseholdMemberSerializer',
    'HouseholdMemberAddSerializer',
]
