# services/booking-service/src/apps/api/views/reservation_views.py
"""
Reservation API Views

Booking evaluation, guarded commits, overrides and cancellations.
"""

import logging

from rest_framework import viewsets, status, filters
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from apps.core.models import Reservation
from apps.core.services import PolicyEngine, CommitResult
from apps.api.serializers import (
    ReservationSerializer,
    BookingRequestSerializer,
    OverrideBookingSerializer,
    ReservationCancelSerializer,
    BookingCancellationSerializer,
    StrikeSerializer,
)
from shared.common.exceptions import (
    ForbiddenException,
    ReservationConflictException,
    RuleViolationException,
)
from .base import ExceptionHandlerMixin, FacilityAdminMixin
from .filters import ReservationFilter
from .pagination import StandardResultsSetPagination

logger = logging.getLogger(__name__)


class ReservationViewSet(ExceptionHandlerMixin, FacilityAdminMixin, viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for reservations.

    Members see their own reservations; facility admins see every
    reservation of a facility they administer.
    """

    queryset = Reservation.objects.select_related('court')
    serializer_class = ReservationSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = ReservationFilter
    ordering_fields = ['date', 'start_time', 'created_at']
    ordering = ['date', 'start_time']

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.engine = PolicyEngine()

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action != 'list':
            return queryset

        facility_id = self.request.query_params.get('facility_id')
        if facility_id and self.is_facility_admin(facility_id):
            return queryset.filter(facility_id=facility_id)
        return queryset.filter(user_id=self.request.user.id)

    def get_serializer_class(self):
        """Return appropriate serializer based on action."""
        if self.action in ['create', 'evaluate']:
            return BookingRequestSerializer
        elif self.action == 'override':
            return OverrideBookingSerializer
        elif self.action == 'cancel':
            return ReservationCancelSerializer
        return ReservationSerializer

    def get_object(self):
        reservation = super().get_object()
        if reservation.user_id != self.request.user.id and not self.is_facility_admin(reservation.facility_id):
            raise ForbiddenException(detail='You cannot access this reservation')
        return reservation

    def _booking_request(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        booking = serializer.to_request()
        if booking.user_id != request.user.id:
            self.require_facility_admin(booking.facility_id)
        return serializer, booking

    def create(self, request, *args, **kwargs):
        """Evaluate the request and commit it when every blocking rule passes."""
        _, booking = self._booking_request(request)
        result = self.engine.commit_if_allowed(booking)
        return self._commit_response(result)

    @action(detail=False, methods=['post'])
    def evaluate(self, request):
        """Dry-run evaluation. Never writes."""
        _, booking = self._booking_request(request)
        result = self.engine.evaluate(booking)
        return Response(result.to_dict())

    @action(detail=False, methods=['post'])
    def override(self, request):
        """Commit as a facility admin past rule violations."""
        serializer, booking = self._booking_request(request)
        self.require_facility_admin(booking.facility_id)

        result = self.engine.commit_with_override(
            booking,
            admin_id=request.user.id,
            reason=serializer.validated_data['reason'],
        )
        return self._commit_response(result)

    def _commit_response(self, result: CommitResult) -> Response:
        evaluation = result.evaluation

        if result.status == CommitResult.DENIED:
            raise RuleViolationException(
                violations=[v.to_dict() for v in evaluation.violations],
                warnings=[w.to_dict() for w in evaluation.warnings],
                detail=evaluation.violations[0].message,
            )

        if result.status == CommitResult.CONFLICT:
            raise ReservationConflictException(detail=result.message)

        return Response({
            'reservation': ReservationSerializer(result.reservation).data,
            'warnings': [w.to_dict() for w in evaluation.warnings],
            'overridden_rules': result.reservation.rule_overrides,
            'is_prime_time': evaluation.is_prime_time,
        }, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        """Cancel a reservation. Late cancellations may issue strikes."""
        reservation = self.get_object()

        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        reservation, cancellation, decision = self.engine.cancel_reservation(
            reservation.id,
            user_id=request.user.id,
            reason=serializer.validated_data.get('reason'),
        )
        return Response({
            'reservation': ReservationSerializer(reservation).data,
            'cancellation': BookingCancellationSerializer(cancellation).data,
            'decision': decision.to_dict(),
        })

    @action(detail=True, methods=['get'], url_path='cancellation-preview')
    def cancellation_preview(self, request, pk=None):
        """What cancelling now would cost, without cancelling."""
        reservation = self.get_object()
        decision = self.engine.evaluate_cancellation(reservation)
        return Response(decision.to_dict())

    @action(detail=True, methods=['post'], url_path='no-show')
    def no_show(self, request, pk=None):
        """Mark a no-show and issue the no-show strike. Facility admins only."""
        reservation = self.get_object()
        self.require_facility_admin(reservation.facility_id)

        strike = self.engine.mark_no_show(reservation.id, marked_by=request.user.id)
        return Response(StrikeSerializer(strike).data, status=status.HTTP_201_CREATED)
