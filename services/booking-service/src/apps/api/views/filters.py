# services/booking-service/src/apps/api/views/filters.py
"""
API Filters

Django Filter classes for the booking policy API.
"""

import django_filters

from apps.core.models import Reservation, Strike


class ReservationFilter(django_filters.FilterSet):
    """Filter for reservation queries."""

    facility_id = django_filters.UUIDFilter(field_name='facility_id')
    court_id = django_filters.UUIDFilter(field_name='court_id')
    user_id = django_filters.UUIDFilter()

    # Date filters
    date = django_filters.DateFilter()
    date_from = django_filters.DateFilter(
        field_name='date',
        lookup_expr='gte'
    )
    date_to = django_filters.DateFilter(
        field_name='date',
        lookup_expr='lte'
    )

    # Status filters
    status = django_filters.ChoiceFilter(
        choices=Reservation.Status.choices
    )
    active = django_filters.BooleanFilter(
        method='filter_active'
    )
    is_prime_time = django_filters.BooleanFilter()
    overridden = django_filters.BooleanFilter(
        method='filter_overridden'
    )

    class Meta:
        model = Reservation
        fields = ['user_id', 'status', 'booking_type', 'is_prime_time']

    def filter_active(self, queryset, name, value):
        """Filter for pending or confirmed reservations."""
        if value:
            return queryset.filter(status__in=Reservation.get_active_statuses())
        return queryset.exclude(status__in=Reservation.get_active_statuses())

    def filter_overridden(self, queryset, name, value):
        """Filter for reservations committed through an admin override."""
        if value:
            return queryset.exclude(override_reason='')
        return queryset.filter(override_reason='')


class StrikeFilter(django_filters.FilterSet):
    """Filter for strike queries."""

    facility_id = django_filters.UUIDFilter(field_name='facility_id')
    user_id = django_filters.UUIDFilter()
    strike_type = django_filters.ChoiceFilter(
        choices=Strike.StrikeType.choices
    )
    revoked = django_filters.BooleanFilter()
    issued_after = django_filters.DateTimeFilter(
        field_name='issued_at',
        lookup_expr='gte'
    )
    issued_before = django_filters.DateTimeFilter(
        field_name='issued_at',
        lookup_expr='lte'
    )

    class Meta:
        model = Strike
        fields = ['user_id', 'strike_type', 'revoked']
