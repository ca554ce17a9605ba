# services/booking-service/src/apps/api/views/tier_views.py
"""
Membership Tier API Views
"""

import logging

from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.core.models import MembershipTier
from apps.core.services import TierService
from apps.api.serializers import (
    MembershipTierSerializer,
    MembershipTierCreateSerializer,
    MembershipTierUpdateSerializer,
    UserTierSerializer,
    TierAssignSerializer,
    TierUnassignSerializer,
    FacilityUserQuerySerializer,
)
from .base import ExceptionHandlerMixin, FacilityAdminMixin
from .pagination import StandardResultsSetPagination

logger = logging.getLogger(__name__)


class TierViewSet(ExceptionHandlerMixin, FacilityAdminMixin, viewsets.ModelViewSet):
    """
    ViewSet for membership tiers.

    Reads are open to members; writes and assignments need a facility admin.
    """

    queryset = MembershipTier.objects.all()
    serializer_class = MembershipTierSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = StandardResultsSetPagination

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.tier_service = TierService()

    def get_queryset(self):
        queryset = super().get_queryset()
        facility_id = self.request.query_params.get('facility_id')
        if facility_id:
            queryset = queryset.filter(facility_id=facility_id)
        return queryset.order_by('facility_id', 'tier_level')

    def get_serializer_class(self):
        """Return appropriate serializer based on action."""
        if self.action == 'create':
            return MembershipTierCreateSerializer
        elif self.action in ['update', 'partial_update']:
            return MembershipTierUpdateSerializer
        elif self.action == 'assign':
            return TierAssignSerializer
        elif self.action == 'unassign':
            return TierUnassignSerializer
        return MembershipTierSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        facility_id = data.pop('facility_id')
        self.get_facility(facility_id)
        self.require_facility_admin(facility_id)

        tier = self.tier_service.create_tier(
            facility_id,
            data.pop('tier_name'),
            data.pop('tier_level'),
            **data
        )
        return Response(MembershipTierSerializer(tier).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        instance = self.get_object()
        self.require_facility_admin(instance.facility_id)

        serializer = self.get_serializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        tier = self.tier_service.update_tier(instance.id, **serializer.validated_data)
        return Response(MembershipTierSerializer(tier).data)

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        self.require_facility_admin(instance.facility_id)

        self.tier_service.delete_tier(instance.id)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'])
    def assign(self, request, pk=None):
        """Assign a user to this tier, replacing any previous assignment."""
        tier = self.get_object()
        self.require_facility_admin(tier.facility_id)

        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        assignment = self.tier_service.assign_tier(
            tier.id,
            serializer.validated_data['user_id'],
            assigned_by=request.user.id,
            expires_at=serializer.validated_data.get('expires_at'),
        )
        return Response(UserTierSerializer(assignment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def unassign(self, request, pk=None):
        tier = self.get_object()
        self.require_facility_admin(tier.facility_id)

        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        removed = self.tier_service.unassign_tier(tier.id, serializer.validated_data['user_id'])
        return Response({'removed': removed})

    @action(detail=False, methods=['get'])
    def effective(self, request):
        """Tier that applies to a user: assignment, else the facility default."""
        query = FacilityUserQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        facility_id = query.validated_data['facility_id']
        user_id = query.validated_data.get('user_id') or request.user.id
        if user_id != request.user.id:
            self.require_facility_admin(facility_id)

        tier = self.tier_service.get_effective_tier(facility_id, user_id)
        return Response({
            'facility_id': str(facility_id),
            'user_id': str(user_id),
            'tier': MembershipTierSerializer(tier).data if tier else None,
        })
