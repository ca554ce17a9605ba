# services/booking-service/src/apps/api/views/strike_views.py
"""
Strike API Views
"""

import logging

from rest_framework import viewsets, status, filters
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from apps.core.models import Reservation, Strike
from apps.core.services import StrikeTracker
from apps.api.serializers import (
    StrikeSerializer,
    StrikeIssueSerializer,
    StrikeRevokeSerializer,
    FacilityUserQuerySerializer,
)
from shared.common.exceptions import ValidationException
from .base import ExceptionHandlerMixin, FacilityAdminMixin
from .filters import StrikeFilter
from .pagination import StandardResultsSetPagination

logger = logging.getLogger(__name__)


class StrikeViewSet(ExceptionHandlerMixin, FacilityAdminMixin, viewsets.ReadOnlyModelViewSet):
    """
    Strike ledger.

    Issuing and revoking strikes is reserved for facility admins.
    """

    queryset = Strike.objects.all()
    serializer_class = StrikeSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = StrikeFilter
    ordering_fields = ['issued_at']
    ordering = ['-issued_at']

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.tracker = StrikeTracker()

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action != 'list':
            return queryset

        facility_id = self.request.query_params.get('facility_id')
        if facility_id and self.is_facility_admin(facility_id):
            return queryset.filter(facility_id=facility_id)
        return queryset.filter(user_id=self.request.user.id)

    def get_object(self):
        strike = super().get_object()
        if strike.user_id != self.request.user.id:
            self.require_facility_admin(strike.facility_id)
        return strike

    def get_serializer_class(self):
        if self.action == 'create':
            return StrikeIssueSerializer
        elif self.action == 'revoke':
            return StrikeRevokeSerializer
        return StrikeSerializer

    def create(self, request, *args, **kwargs):
        """Issue a strike."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        self.get_facility(data['facility_id'])
        self.require_facility_admin(data['facility_id'])

        related = None
        if data.get('related_reservation_id'):
            related = Reservation.objects.filter(
                id=data['related_reservation_id'],
                facility_id=data['facility_id']
            ).first()
            if related is None:
                raise ValidationException(
                    {'related_reservation_id': ['Reservation not found at this facility']},
                    detail='Reservation not found at this facility'
                )

        strike = self.tracker.issue_strike(
            facility_id=data['facility_id'],
            user_id=data['user_id'],
            strike_type=data['strike_type'],
            reason=data.get('reason', ''),
            issued_by=request.user.id,
            related_reservation=related,
            expires_at=data.get('expires_at'),
        )
        return Response(StrikeSerializer(strike).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def revoke(self, request, pk=None):
        """Revoke a strike. Revoked strikes stop counting immediately."""
        strike = self.get_object()
        self.require_facility_admin(strike.facility_id)

        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        strike = self.tracker.revoke_strike(
            strike.id,
            revoked_by=request.user.id,
            reason=serializer.validated_data['reason'],
        )
        return Response(StrikeSerializer(strike).data)

    @action(detail=False, methods=['get'], url_path='status')
    def lockout_status(self, request):
        """Lockout state of a user. Members may only query themselves."""
        query = FacilityUserQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        facility_id = query.validated_data['facility_id']
        user_id = query.validated_data.get('user_id') or request.user.id
        if user_id != request.user.id:
            self.require_facility_admin(facility_id)

        strike_status = self.tracker.status(user_id, facility_id)
        return Response({
            'facility_id': str(facility_id),
            'user_id': str(user_id),
            **strike_status.to_dict(),
        })
