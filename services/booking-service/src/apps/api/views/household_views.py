# services/booking-service/src/apps/api/views/household_views.py
"""
Household API Views

Households and their member verification workflow.
"""

import logging

from rest_framework import mixins, viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.core.models import Household
from apps.core.services import HouseholdService
from apps.api.serializers import (
    HouseholdSerializer,
    HouseholdListSerializer,
    HouseholdCreateSerializer,
    HouseholdMemberSerializer,
    HouseholdMemberAddSerializer,
)
from .base import ExceptionHandlerMixin, FacilityAdminMixin
from .pagination import StandardResultsSetPagination

logger = logging.getLogger(__name__)

MEMBER_PATH = r'members/(?P<user_id>[0-9a-f-]+)'


class HouseholdViewSet(
    ExceptionHandlerMixin,
    FacilityAdminMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet
):
    """
    ViewSet for households.

    Members may request to join a household; verification, rejection and
    any change to other accounts need a facility admin.
    """

    queryset = Household.objects.prefetch_related('members')
    serializer_class = HouseholdSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = StandardResultsSetPagination

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.household_service = HouseholdService()

    def get_queryset(self):
        queryset = super().get_queryset()
        facility_id = self.request.query_params.get('facility_id')
        if facility_id:
            queryset = queryset.filter(facility_id=facility_id)
        return queryset

    def get_serializer_class(self):
        """Return appropriate serializer based on action."""
        if self.action == 'list':
            return HouseholdListSerializer
        elif self.action == 'create':
            return HouseholdCreateSerializer
        elif self.action == 'members':
            return HouseholdMemberAddSerializer
        return HouseholdSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        facility_id = data.pop('facility_id')
        self.get_facility(facility_id)
        self.require_facility_admin(facility_id)

        limits = {
            name: data.pop(name)
            for name in ('max_members', 'max_active_reservations', 'prime_time_max_per_week')
            if name in data
        }
        household = self.household_service.create_household(facility_id, **data, **limits)
        return Response(HouseholdSerializer(household).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def members(self, request, pk=None):
        """Add a member. Non-admins may only add themselves, unverified."""
        household = self.get_object()

        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data['user_id'] != request.user.id or data['verified'] or data['is_primary']:
            self.require_facility_admin(household.facility_id)

        member = self.household_service.add_member(
            household.id,
            data['user_id'],
            is_primary=data['is_primary'],
            verified=data['verified'],
            verified_by=request.user.id if data['verified'] else None,
        )
        return Response(HouseholdMemberSerializer(member).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path=f'{MEMBER_PATH}/verify')
    def verify_member(self, request, pk=None, user_id=None):
        household = self.get_object()
        self.require_facility_admin(household.facility_id)

        member = self.household_service.verify_member(household.id, user_id, verified_by=request.user.id)
        return Response(HouseholdMemberSerializer(member).data)

    @action(detail=True, methods=['post'], url_path=f'{MEMBER_PATH}/reject')
    def reject_member(self, request, pk=None, user_id=None):
        household = self.get_object()
        self.require_facility_admin(household.facility_id)

        member = self.household_service.reject_member(household.id, user_id, rejected_by=request.user.id)
        return Response(HouseholdMemberSerializer(member).data)

    @action(detail=True, methods=['post'], url_path=f'{MEMBER_PATH}/primary')
    def set_primary(self, request, pk=None, user_id=None):
        household = self.get_object()
        self.require_facility_admin(household.facility_id)

        member = self.household_service.set_primary(household.id, user_id)
        return Response(HouseholdMemberSerializer(member).data)

    @action(detail=True, methods=['delete'], url_path=MEMBER_PATH)
    def remove_member(self, request, pk=None, user_id=None):
        """Remove a member. Users may remove themselves."""
        household = self.get_object()
        if str(request.user.id) != str(user_id):
            self.require_facility_admin(household.facility_id)

        self.household_service.remove_member(household.id, user_id)
        return Response(status=status.HTTP_204_NO_CONTENT)
