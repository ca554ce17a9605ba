# services/booking-service/src/apps/core/models/court.py
"""
Court Models

Court catalog: courts, per-weekday operating configuration and blackouts.
"""

from datetime import date

from django.db import models

from shared.common.mixins import UUIDPrimaryKeyMixin, TimestampMixin

from .facility import Facility, weekday_index


class Court(UUIDPrimaryKeyMixin, TimestampMixin, models.Model):
    """A bookable court belonging to a facility."""

    class Status(models.TextChoices):
        AVAILABLE = 'available', 'Available'
        MAINTENANCE = 'maintenance', 'Maintenance'
        CLOSED = 'closed', 'Closed'

    facility = models.ForeignKey(
        Facility,
        on_delete=models.CASCADE,
        related_name='courts'
    )
    name = models.CharField(max_length=100)
    court_number = models.PositiveIntegerField(blank=True, null=True)
    surface_type = models.CharField(max_length=50, blank=True)
    is_indoor = models.BooleanField(default=False)
    has_lights = models.BooleanField(default=False)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.AVAILABLE
    )

    class Meta:
        db_table = 'courts'
        ordering = ['facility', 'court_number', 'name']

    def __str__(self):
        return self.name

    def config_for(self, value: date):
        """Operating config for the weekday of ``value``, if one is set."""
        day = weekday_index(value)
        for config in self.operating_configs.all():
            if config.day_of_week == day:
                return config
        return None


class CourtOperatingConfig(UUIDPrimaryKeyMixin, models.Model):
    """
    Per-weekday settings of a court.

    ``day_of_week`` uses 0 for Sunday through 6 for Saturday. Zero-valued
    duration and buffer fields mean "not set here, use the rule parameter".
    """

    court = models.ForeignKey(
        Court,
        on_delete=models.CASCADE,
        related_name='operating_configs'
    )
    day_of_week = models.PositiveSmallIntegerField()
    is_open = models.BooleanField(default=True)
    open_time = models.TimeField(blank=True, null=True)
    close_time = models.TimeField(blank=True, null=True)

    # Prime time
    prime_time_start = models.TimeField(blank=True, null=True)
    prime_time_end = models.TimeField(blank=True, null=True)
    prime_time_max_duration = models.PositiveIntegerField(default=0)

    # Slot grid
    slot_duration = models.PositiveIntegerField(default=0)
    min_duration = models.PositiveIntegerField(default=0)
    max_duration = models.PositiveIntegerField(default=0)

    # Turnover buffers
    buffer_before = models.PositiveIntegerField(default=0)
    buffer_after = models.PositiveIntegerField(default=0)

    release_time = models.TimeField(blank=True, null=True)

    class Meta:
        db_table = 'court_operating_configs'
        ordering = ['court', 'day_of_week']
        constraints = [
            models.UniqueConstraint(
                fields=['court', 'day_of_week'],
                name='unique_court_day_config'
            ),
            models.CheckConstraint(
                condition=models.Q(day_of_week__lte=6),
                name='valid_day_of_week'
            ),
        ]

    def __str__(self):
        return f"{self.court_id} day {self.day_of_week}"

    @property
    def has_prime_time(self) -> bool:
        return bool(self.prime_time_start and self.prime_time_end)


class CourtBlackout(UUIDPrimaryKeyMixin, TimestampMixin, models.Model):
    """
    A block of unavailability for one court, or all courts of a facility.

    ``recurrence_rule`` is an RFC 5545 RRULE string anchored at
    ``start_datetime``; each occurrence blocks the same time of day.
    """

    class BlackoutType(models.TextChoices):
        MAINTENANCE = 'maintenance', 'Maintenance'
        EVENT = 'event', 'Event'
        TOURNAMENT = 'tournament', 'Tournament'
        HOLIDAY = 'holiday', 'Holiday'
        WEATHER = 'weather', 'Weather'
        CUSTOM = 'custom', 'Custom'

    class Visibility(models.TextChoices):
        VISIBLE = 'visible', 'Visible'
        HIDDEN = 'hidden', 'Hidden'

    facility = models.ForeignKey(
        Facility,
        on_delete=models.CASCADE,
        related_name='blackouts'
    )
    court = models.ForeignKey(
        Court,
        on_delete=models.CASCADE,
        related_name='blackouts',
        blank=True,
        null=True,
        help_text="Null blocks every court of the facility"
    )
    blackout_type = models.CharField(
        max_length=20,
        choices=BlackoutType.choices,
        default=BlackoutType.MAINTENANCE
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    start_datetime = models.DateTimeField()
    end_datetime = models.DateTimeField()
    recurrence_rule = models.CharField(max_length=255, blank=True)
    visibility = models.CharField(
        max_length=10,
        choices=Visibility.choices,
        default=Visibility.VISIBLE
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'court_blackouts'
        ordering = ['start_datetime']
        indexes = [
            models.Index(fields=['facility', 'start_datetime', 'end_datetime']),
        ]

    def __str__(self):
        return self.title

    @property
    def public_reason(self) -> str:
        if self.visibility == self.Visibility.VISIBLE:
            return self.title
        return 'scheduled maintenance'
