# services/booking-service/src/apps/core/models/membership.py
"""
Membership Tier Models

Tiers carry per-member limits that override facility rule parameters.
"""

import uuid
from datetime import datetime
from typing import Optional

from django.db import models
from django.db.models import Q
from django.utils import timezone

from shared.common.mixins import UUIDPrimaryKeyMixin, TimestampMixin

from .facility import Facility


class MembershipTier(UUIDPrimaryKeyMixin, TimestampMixin, models.Model):
    """
    Membership tier of a facility.

    Nullable limits mean "no tier limit"; the facility rule parameter
    applies instead.
    """

    facility = models.ForeignKey(
        Facility,
        on_delete=models.CASCADE,
        related_name='tiers'
    )
    tier_name = models.CharField(max_length=100)
    tier_level = models.IntegerField(
        help_text="Lower levels are more restrictive"
    )
    description = models.TextField(blank=True)

    advance_booking_days = models.PositiveIntegerField(default=7)
    prime_time_eligible = models.BooleanField(default=True)
    prime_time_max_per_week = models.PositiveIntegerField(blank=True, null=True)
    max_active_reservations = models.PositiveIntegerField(blank=True, null=True)
    max_reservations_per_week = models.PositiveIntegerField(blank=True, null=True)
    max_minutes_per_week = models.PositiveIntegerField(blank=True, null=True)

    is_default = models.BooleanField(default=False)

    class Meta:
        db_table = 'membership_tiers'
        ordering = ['facility', 'tier_level']
        constraints = [
            models.UniqueConstraint(
                fields=['facility', 'tier_level'],
                name='unique_tier_level_per_facility'
            ),
            models.UniqueConstraint(
                fields=['facility'],
                condition=Q(is_default=True),
                name='single_default_tier_per_facility'
            ),
        ]

    def __str__(self):
        return f"{self.tier_name} (level {self.tier_level})"


class UserTier(TimestampMixin, models.Model):
    """Explicit tier assignment of a user at a facility."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_id = models.UUIDField(db_index=True)
    facility = models.ForeignKey(
        Facility,
        on_delete=models.CASCADE,
        related_name='tier_assignments'
    )
    tier = models.ForeignKey(
        MembershipTier,
        on_delete=models.CASCADE,
        related_name='assignments'
    )
    assigned_at = models.DateTimeField(default=timezone.now)
    assigned_by = models.UUIDField(blank=True, null=True)
    expires_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = 'user_tiers'
        constraints = [
            models.UniqueConstraint(
                fields=['user_id', 'facility'],
                name='unique_user_tier_per_facility'
            ),
        ]

    def __str__(self):
        return f"{self.user_id} -> {self.tier_id}"

    def is_active_at(self, moment: datetime) -> bool:
        return self.expires_at is None or self.expires_at > moment

    @classmethod
    def effective_tier(
        cls,
        facility_id: uuid.UUID,
        user_id: uuid.UUID,
        moment: datetime = None
    ) -> Optional[MembershipTier]:
        """
        Resolve a user's tier: unexpired explicit assignment, else the
        facility default tier, else None.
        """
        moment = moment or timezone.now()

        assignment = (
            cls.objects.select_related('tier')
            .filter(facility_id=facility_id, user_id=user_id)
            .first()
        )
        if assignment and assignment.is_active_at(moment):
            return assignment.tier

        return MembershipTier.objects.filter(
            facility_id=facility_id,
            is_default=True
        ).first()
