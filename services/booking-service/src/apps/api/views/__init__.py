# services/booking-service/src/apps/api/views/__init__.py
"""
Booking Policy API Views
"""

from .rule_views import (
    RuleDefinitionViewSet,
    FacilityRulesView,
    FacilityRuleDetailView,
    FacilityRulesEnableAllView,
    FacilityRulesDisableAllView,
    FacilityRulesBulkView,
    FacilityPrimeTimeView,
)

from .reservation_views import (
    ReservationViewSet,
)

from .strike_views import (
    StrikeViewSet,
)

from .tier_views import (
    TierViewSet,
)

from .household_views import (
    HouseholdViewSet,
)


__all__ = [
    # Rules
    'RuleDefinitionViewSet',
    'FacilityRulesView',
    'FacilityRuleDetailView',
    'FacilityRulesEnableAllView',
    'FacilityRulesDisableAllView',
    'FacilityRulesBulkView',
    'FacilityPrimeTimeView',

    # Reservations
    'ReservationViewSet',

    # Strikes
    'StrikeViewSet',

    # Tiers
    'TierViewSet',

    # Households
    'HouseholdViewSet',
]
