# services/booking-service/src/apps/core/models/reservation.py
"""
Reservation Models

Committed court reservations, their cancellations and the lock rows that
serialize commits per court-day and per account.
"""

import uuid
from datetime import date, datetime, tzinfo

from django.db import models
from django.utils import timezone

from shared.common.mixins import UUIDPrimaryKeyMixin, TimestampMixin

from .court import Court
from .facility import Facility


class Reservation(UUIDPrimaryKeyMixin, TimestampMixin, models.Model):
    """
    A court reservation.

    Times are facility-local wall clock values on ``date``.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        CONFIRMED = 'confirmed', 'Confirmed'
        CANCELLED = 'cancelled', 'Cancelled'
        COMPLETED = 'completed', 'Completed'

    class BookingType(models.TextChoices):
        REGULAR = 'regular', 'Regular'
        LESSON = 'lesson', 'Lesson'
        CLINIC = 'clinic', 'Clinic'
        EVENT = 'event', 'Event'

    facility = models.ForeignKey(
        Facility,
        on_delete=models.CASCADE,
        related_name='reservations'
    )
    court = models.ForeignKey(
        Court,
        on_delete=models.CASCADE,
        related_name='reservations'
    )
    user_id = models.UUIDField(db_index=True)

    # Schedule
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    duration_minutes = models.PositiveIntegerField()

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.CONFIRMED
    )
    booking_type = models.CharField(
        max_length=20,
        choices=BookingType.choices,
        default=BookingType.REGULAR
    )
    activity_type = models.CharField(max_length=50, blank=True)
    notes = models.TextField(blank=True)
    is_prime_time = models.BooleanField(default=False)

    # Attendance
    checked_in = models.BooleanField(default=False)
    checked_in_at = models.DateTimeField(blank=True, null=True)
    no_show_marked = models.BooleanField(default=False)
    no_show_marked_at = models.DateTimeField(blank=True, null=True)

    # Admin override audit
    rule_overrides = models.JSONField(default=list, blank=True)
    override_reason = models.TextField(blank=True)
    overridden_by = models.UUIDField(blank=True, null=True)

    # Cancellation
    cancelled_at = models.DateTimeField(blank=True, null=True)
    cancelled_by = models.UUIDField(blank=True, null=True)
    cancellation_reason = models.TextField(blank=True)

    created_by = models.UUIDField(blank=True, null=True)

    class Meta:
        db_table = 'reservations'
        ordering = ['date', 'start_time']
        indexes = [
            models.Index(fields=['court', 'date']),
            models.Index(fields=['facility', 'user_id', 'date']),
            models.Index(fields=['status', 'date']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_time__gt=models.F('start_time')),
                name='valid_reservation_times'
            ),
        ]

    def __str__(self):
        return f"{self.court_id} {self.date} {self.start_time:%H:%M}-{self.end_time:%H:%M}"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_active(self) -> bool:
        return self.status in self.get_active_statuses()

    @property
    def was_overridden(self) -> bool:
        return bool(self.rule_overrides)

    def start_datetime(self, tz: tzinfo) -> datetime:
        """Start as an aware datetime in the facility time zone."""
        return datetime.combine(self.date, self.start_time, tzinfo=tz)

    def end_datetime(self, tz: tzinfo) -> datetime:
        return datetime.combine(self.date, self.end_time, tzinfo=tz)

    # ==========================================================================
    # State Changes
    # ==========================================================================

    def cancel(self, user_id: uuid.UUID, reason: str = None, at: datetime = None):
        """Cancel the reservation."""
        if not self.is_active:
            raise ValueError(f"Cannot cancel reservation in {self.status} status")

        self.status = self.Status.CANCELLED
        self.cancelled_at = at or timezone.now()
        self.cancelled_by = user_id
        self.cancellation_reason = reason or ''
        self.save(update_fields=[
            'status', 'cancelled_at', 'cancelled_by',
            'cancellation_reason', 'updated_at'
        ])

    def mark_no_show(self, at: datetime = None):
        """Flag the reservation as a no-show."""
        if self.no_show_marked:
            raise ValueError("Reservation is already marked as no-show")
        if self.status == self.Status.CANCELLED:
            raise ValueError("Cannot mark a cancelled reservation as no-show")

        self.no_show_marked = True
        self.no_show_marked_at = at or timezone.now()
        self.save(update_fields=['no_show_marked', 'no_show_marked_at', 'updated_at'])

    # ==========================================================================
    # Class Methods
    # ==========================================================================

    @classmethod
    def get_active_statuses(cls) -> list:
        return [cls.Status.PENDING, cls.Status.CONFIRMED]

    @classmethod
    def get_court_collisions(
        cls,
        court_id: uuid.UUID,
        on_date: date,
        start,
        end,
        exclude_id: uuid.UUID = None
    ):
        """Active reservations on a court overlapping ``[start, end)``."""
        queryset = cls.objects.filter(
            court_id=court_id,
            date=on_date,
            status__in=cls.get_active_statuses(),
            start_time__lt=end,
            end_time__gt=start,
        )
        if exclude_id:
            queryset = queryset.exclude(id=exclude_id)
        return queryset

    @classmethod
    def get_for_users(
        cls,
        facility_id: uuid.UUID,
        user_ids,
        date_from: date,
        date_to: date = None
    ):
        """
        Reservations of ``user_ids`` dated on or after ``date_from``, and
        on or before ``date_to`` when given.
        """
        queryset = cls.objects.filter(
            facility_id=facility_id,
            user_id__in=list(user_ids),
            date__gte=date_from,
        )
        if date_to is not None:
            queryset = queryset.filter(date__lte=date_to)
        return queryset.order_by('date', 'start_time')


class BookingCancellation(models.Model):
    """
    Cancellation record kept for late-cancel penalties and cooldowns.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    reservation = models.ForeignKey(
        Reservation,
        on_delete=models.CASCADE,
        related_name='cancellations'
    )
    facility = models.ForeignKey(
        Facility,
        on_delete=models.CASCADE,
        related_name='cancellations'
    )
    user_id = models.UUIDField(db_index=True)
    cancelled_at = models.DateTimeField(default=timezone.now)
    booking_start_time = models.DateTimeField()
    minutes_before_start = models.IntegerField()
    is_late_cancel = models.BooleanField(default=False)
    strike_issued = models.BooleanField(default=False)
    strike = models.ForeignKey(
        'core.Strike',
        on_delete=models.SET_NULL,
        related_name='cancellations',
        blank=True,
        null=True
    )
    cancel_reason = models.TextField(blank=True)

    class Meta:
        db_table = 'booking_cancellations'
        ordering = ['-cancelled_at']
        indexes = [
            models.Index(fields=['facility', 'user_id', 'cancelled_at']),
        ]

    def __str__(self):
        return f"{self.reservation_id} cancelled {self.minutes_before_start}m before start"

    @classmethod
    def recent_for_user(cls, facility_id, user_id, since: datetime):
        return cls.objects.select_related('reservation').filter(
            facility_id=facility_id,
            user_id=user_id,
            cancelled_at__gte=since,
        )


class CourtDayLock(models.Model):
    """
    Serialization row for commits on one court and date.

    Rows are created on demand and locked with ``select_for_update``.
    """

    court = models.ForeignKey(
        Court,
        on_delete=models.CASCADE,
        related_name='day_locks'
    )
    date = models.DateField()
    last_committed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = 'court_day_locks'
        constraints = [
            models.UniqueConstraint(
                fields=['court', 'date'],
                name='unique_court_day_lock'
            ),
        ]

    def __str__(self):
        return f"lock {self.court_id} {self.date}"


class AccountBookingLock(models.Model):
    """
    Serialization row for one account's commits at a facility.

    Taken before the court-day lock so overlap and weekly re-checks see
    the account's other commits.
    """

    facility = models.ForeignKey(
        Facility,
        on_delete=models.CASCADE,
        related_name='account_locks'
    )
    user_id = models.UUIDField()
    last_committed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = 'account_booking_locks'
        constraints = [
            models.UniqueConstraint(
                fields=['facility', 'user_id'],
                name='unique_account_booking_lock'
            ),
        ]

    def __str__(self):
        return f"lock {self.facility_id} {self.user_id}"
