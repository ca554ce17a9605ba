# services/booking-service/src/apps/api/serializers/reservation_serializers.py
"""
Reservation Serializers

Serializers for reservations, booking requests and cancellations.
"""

from rest_framework import serializers

from apps.core.models import Court, Reservation, BookingCancellation
from apps.core.rules.context import BookingRequest


class ReservationSerializer(serializers.ModelSerializer):
    """Base reservation serializer."""

    status_display = serializers.CharField(
        source='get_status_display',
        read_only=True
    )
    was_overridden = serializers.BooleanField(read_only=True)

    class Meta:
        model = Reservation
        fields = [
            'id', 'facility_id', 'court_id', 'user_id',
            'date', 'start_time', 'end_time', 'duration_minutes',
            'status', 'status_display', 'booking_type', 'activity_type',
            'notes', 'is_prime_time',
            'checked_in', 'no_show_marked', 'no_show_marked_at',
            'rule_overrides', 'override_reason', 'overridden_by', 'was_overridden',
            'cancelled_at', 'cancelled_by', 'cancellation_reason',
            'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class BookingRequestSerializer(serializers.Serializer):
    """
    A proposed reservation.

    Times are facility-local. ``user_id`` defaults to the caller.
    """

    facility_id = serializers.UUIDField()
    court_id = serializers.UUIDField()
    user_id = serializers.UUIDField(required=False)
    date = serializers.DateField()
    start_time = serializers.TimeField()
    end_time = serializers.TimeField()
    booking_type = serializers.ChoiceField(
        choices=Reservation.BookingType.choices,
        required=False,
        default=Reservation.BookingType.REGULAR
    )
    activity_type = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if attrs['end_time'] <= attrs['start_time']:
            raise serializers.ValidationError({
                'end_time': 'End time must be after start time'
            })

        if not Court.objects.filter(id=attrs['court_id'], facility_id=attrs['facility_id']).exists():
            raise serializers.ValidationError({
                'court_id': 'Court not found at this facility'
            })

        if not attrs.get('user_id'):
            request = self.context.get('request')
            attrs['user_id'] = getattr(getattr(request, 'user', None), 'id', None)
            if attrs['user_id'] is None:
                raise serializers.ValidationError({'user_id': 'This field is required.'})

        return attrs

    def to_request(self) -> BookingRequest:
        data = self.validated_data
        return BookingRequest(
            court_id=data['court_id'],
            user_id=data['user_id'],
            facility_id=data['facility_id'],
            date=data['date'],
            start_time=data['start_time'],
            end_time=data['end_time'],
            booking_type=data.get('booking_type', ''),
            activity_type=data.get('activity_type', ''),
            notes=data.get('notes', ''),
        )


class OverrideBookingSerializer(BookingRequestSerializer):
    """Booking request committed by a facility admin past rule violations."""

    reason = serializers.CharField(max_length=1000)

    def validate_reason(self, value):
        if not value.strip():
            raise serializers.ValidationError('An override reason is required')
        return value.strip()


class ReservationCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=1000)


class BookingCancellationSerializer(serializers.ModelSerializer):

    class Meta:
        model = BookingCancellation
        fields = [
            'id', 'reservation_id', 'facility_id', 'user_id',
            'cancelled_at', 'booking_start_time', 'minutes_before_start',
            'is_late_cancel', 'strike_issued', 'strike_id', 'cancel_reason',
        ]
        read_only_fields = fields
