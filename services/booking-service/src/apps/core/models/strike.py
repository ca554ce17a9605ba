# services/booking-service/src/apps/core/models/strike.py
"""
Strike Model

Append-only strike ledger. Lockout state is derived from it on read.
"""

import uuid
from datetime import datetime, timedelta

from django.db import models
from django.utils import timezone

from shared.common.mixins import UUIDPrimaryKeyMixin, TimestampMixin

from .facility import Facility


class Strike(UUIDPrimaryKeyMixin, TimestampMixin, models.Model):
    """A strike against a user at a facility."""

    class StrikeType(models.TextChoices):
        NO_SHOW = 'no_show', 'No Show'
        LATE_CANCEL = 'late_cancel', 'Late Cancellation'
        VIOLATION = 'violation', 'Rule Violation'
        MANUAL = 'manual', 'Manual'

    facility = models.ForeignKey(
        Facility,
        on_delete=models.CASCADE,
        related_name='strikes'
    )
    user_id = models.UUIDField(db_index=True)
    strike_type = models.CharField(max_length=20, choices=StrikeType.choices)
    strike_reason = models.TextField(blank=True)
    related_reservation = models.ForeignKey(
        'core.Reservation',
        on_delete=models.SET_NULL,
        related_name='strikes',
        blank=True,
        null=True
    )

    issued_at = models.DateTimeField(default=timezone.now)
    issued_by = models.UUIDField(blank=True, null=True)
    expires_at = models.DateTimeField(blank=True, null=True)

    # Revocation
    revoked = models.BooleanField(default=False)
    revoked_at = models.DateTimeField(blank=True, null=True)
    revoked_by = models.UUIDField(blank=True, null=True)
    revoke_reason = models.TextField(blank=True)

    class Meta:
        db_table = 'strikes'
        ordering = ['-issued_at']
        indexes = [
            models.Index(fields=['facility', 'user_id', 'issued_at']),
        ]

    def __str__(self):
        return f"{self.strike_type} for {self.user_id} at {self.issued_at:%Y-%m-%d}"

    def is_active_at(self, moment: datetime) -> bool:
        return not self.revoked and (self.expires_at is None or self.expires_at > moment)

    def revoke(self, revoked_by: uuid.UUID, reason: str, at: datetime = None):
        if self.revoked:
            raise ValueError("Strike is already revoked")

        self.revoked = True
        self.revoked_at = at or timezone.now()
        self.revoked_by = revoked_by
        self.revoke_reason = reason or ''
        self.save(update_fields=[
            'revoked', 'revoked_at', 'revoked_by', 'revoke_reason', 'updated_at'
        ])

    @classmethod
    def qualifying(cls, facility_id, user_id, now: datetime, window_days: int):
        """Non-revoked, unexpired strikes issued within the trailing window."""
        return cls.objects.filter(
            facility_id=facility_id,
            user_id=user_id,
            revoked=False,
            issued_at__gte=now - timedelta(days=window_days),
            issued_at__lte=now,
        ).filter(
            models.Q(expires_at__isnull=True) | models.Q(expires_at__gt=now)
        ).order_by('-issued_at')
