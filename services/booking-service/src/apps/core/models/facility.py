# services/booking-service/src/apps/core/models/facility.py
"""
Facility Model

A bookable facility (club) with its policy-level settings.
"""

import uuid
from datetime import date

from django.db import models

from shared.common.mixins import UUIDPrimaryKeyMixin, TimestampMixin


WEEKDAY_NAMES = [
    'sunday', 'monday', 'tuesday', 'wednesday',
    'thursday', 'friday', 'saturday',
]


def weekday_index(value: date) -> int:
    """Day of week with Sunday as 0."""
    return (value.weekday() + 1) % 7


def weekday_name(value: date) -> str:
    return WEEKDAY_NAMES[weekday_index(value)]


class Facility(UUIDPrimaryKeyMixin, TimestampMixin, models.Model):
    """
    Facility owning courts, tiers, households and rule configuration.

    Admin toggles decide whether rule families apply to facility admins:
    the global restrictions toggle, the peak-hours (prime time) toggle and
    the weekend-policy toggle gate their families independently.
    """

    class RestrictionType(models.TextChoices):
        ACCOUNT = 'account', 'Per Account'
        ADDRESS = 'address', 'Per Household Address'

    name = models.CharField(max_length=255)
    timezone = models.CharField(max_length=64, default='UTC')

    restriction_type = models.CharField(
        max_length=20,
        choices=RestrictionType.choices,
        default=RestrictionType.ACCOUNT
    )

    operating_hours = models.JSONField(
        default=dict,
        blank=True,
        help_text='{"monday": {"open": "08:00", "close": "21:00"}, "sunday": {"closed": true}}'
    )
    prime_time_windows = models.JSONField(
        default=dict,
        blank=True,
        help_text='{"monday": [{"start": "17:00", "end": "21:00"}], ...}'
    )

    # Admin toggles
    restrictions_apply_to_admins = models.BooleanField(default=True)
    peak_hours_apply_to_admins = models.BooleanField(default=True)
    weekend_policy_apply_to_admins = models.BooleanField(default=True)

    class Meta:
        db_table = 'facilities'
        ordering = ['name']
        verbose_name_plural = 'facilities'

    def __str__(self):
        return self.name

    @property
    def uses_address_restrictions(self) -> bool:
        return self.restriction_type == self.RestrictionType.ADDRESS

    def hours_for(self, value: date) -> dict:
        """Facility-wide operating hours for the weekday of ``value``."""
        return (self.operating_hours or {}).get(weekday_name(value)) or {}

    def prime_windows_for(self, value: date) -> list:
        return list((self.prime_time_windows or {}).get(weekday_name(value)) or [])


class FacilityAdmin(TimestampMixin, models.Model):
    """Marks a user as an administrator of a facility."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    facility = models.ForeignKey(
        Facility,
        on_delete=models.CASCADE,
        related_name='admins'
    )
    user_id = models.UUIDField(db_index=True)

    class Meta:
        db_table = 'facility_admins'
        constraints = [
            models.UniqueConstraint(
                fields=['facility', 'user_id'],
                name='unique_facility_admin'
            ),
        ]

    def __str__(self):
        return f"{self.user_id} @ {self.facility_id}"

    @classmethod
    def is_admin(cls, facility_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        return cls.objects.filter(facility_id=facility_id, user_id=user_id).exists()
