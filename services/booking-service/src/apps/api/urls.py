# services/booking-service/src/apps/api/urls.py
"""
Booking Policy API URL Configuration

Defines all API routes for the booking service.
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    # Rules
    RuleDefinitionViewSet,
    FacilityRulesView,
    FacilityRuleDetailView,
    FacilityRulesEnableAllView,
    FacilityRulesDisableAllView,
    FacilityRulesBulkView,
    FacilityPrimeTimeView,
    # Reservations
    ReservationViewSet,
    # Strikes
    StrikeViewSet,
    # Tiers
    TierViewSet,
    # Households
    HouseholdViewSet,
)

app_name = 'api'

# Create router and register viewsets
router = DefaultRouter()
router.register(r'rules/definitions', RuleDefinitionViewSet, basename='rule-definition')
router.register(r'reservations', ReservationViewSet, basename='reservation')
router.register(r'strikes', StrikeViewSet, basename='strike')
router.register(r'tiers', TierViewSet, basename='tier')
router.register(r'households', HouseholdViewSet, basename='household')

urlpatterns = [
    # Router URLs
    path('', include(router.urls)),

    # Facility rule configuration
    path(
        'facilities/<uuid:facility_id>/rules/',
        FacilityRulesView.as_view(),
        name='facility-rules'
    ),
    path(
        'facilities/<uuid:facility_id>/rules/enable-all/',
        FacilityRulesEnableAllView.as_view(),
        name='facility-rules-enable-all'
    ),
    path(
        'facilities/<uuid:facility_id>/rules/disable-all/',
        FacilityRulesDisableAllView.as_view(),
        name='facility-rules-disable-all'
    ),
    path(
        'facilities/<uuid:facility_id>/rules/bulk/',
        FacilityRulesBulkView.as_view(),
        name='facility-rules-bulk'
    ),
    path(
        'facilities/<uuid:facility_id>/rules/<str:code>/',
        FacilityRuleDetailView.as_view(),
        name='facility-rule-detail'
    ),

    # Prime time
    path(
        'facilities/<uuid:facility_id>/prime-time/',
        FacilityPrimeTimeView.as_view(),
        name='facility-prime-time'
    ),
]
