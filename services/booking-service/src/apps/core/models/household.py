# services/booking-service/src/apps/core/models/household.py
"""
Household Models

Accounts grouped under a shared address for address-based restrictions.
"""

import re
import uuid

from django.db import models
from django.db.models import Q
from django.utils import timezone

from shared.common.mixins import UUIDPrimaryKeyMixin, TimestampMixin

from .facility import Facility


ADDRESS_ABBREVIATIONS = {
    'street': 'st',
    'avenue': 'ave',
    'boulevard': 'blvd',
    'drive': 'dr',
    'road': 'rd',
    'lane': 'ln',
    'court': 'ct',
    'circle': 'cir',
    'place': 'pl',
    'terrace': 'ter',
    'highway': 'hwy',
    'apartment': 'apt',
    'suite': 'ste',
    'building': 'bldg',
    'floor': 'fl',
    'north': 'n',
    'south': 's',
    'east': 'e',
    'west': 'w',
    'northeast': 'ne',
    'northwest': 'nw',
    'southeast': 'se',
    'southwest': 'sw',
}


def normalize_address(address: str) -> str:
    """
    Normalize a street address for household matching.

    Lowercases, abbreviates common words, drops punctuation and
    collapses whitespace, so "12 North Main Street." == "12 n main st".
    """
    if not address:
        return ''

    normalized = address.lower().strip()
    for full, abbr in ADDRESS_ABBREVIATIONS.items():
        normalized = re.sub(rf'\b{full}\b', abbr, normalized)

    normalized = re.sub(r'[.,#]', '', normalized)
    normalized = re.sub(r'\s+', ' ', normalized)
    return normalized.strip()


class Household(UUIDPrimaryKeyMixin, TimestampMixin, models.Model):
    """
    Household sharing an address at a facility.

    Null caps fall back to the HH-00x rule parameters.
    """

    facility = models.ForeignKey(
        Facility,
        on_delete=models.CASCADE,
        related_name='households'
    )
    household_name = models.CharField(max_length=255, blank=True)
    street_address = models.CharField(max_length=255)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=50, blank=True)
    zip_code = models.CharField(max_length=20, blank=True)
    normalized_address = models.CharField(max_length=255, editable=False)

    max_members = models.PositiveIntegerField(blank=True, null=True)
    max_active_reservations = models.PositiveIntegerField(blank=True, null=True)
    prime_time_max_per_week = models.PositiveIntegerField(blank=True, null=True)

    class Meta:
        db_table = 'households'
        ordering = ['facility', 'normalized_address']
        constraints = [
            models.UniqueConstraint(
                fields=['facility', 'normalized_address'],
                name='unique_household_address'
            ),
        ]

    def __str__(self):
        return self.household_name or self.street_address

    def save(self, *args, **kwargs):
        self.normalized_address = normalize_address(
            ' '.join(filter(None, [self.street_address, self.city, self.state, self.zip_code]))
        )
        super().save(*args, **kwargs)

    @property
    def verified_members(self):
        return self.members.filter(
            verification_status=HouseholdMember.VerificationStatus.VERIFIED
        )

    def verified_user_ids(self) -> list:
        return list(self.verified_members.values_list('user_id', flat=True))


class HouseholdMember(TimestampMixin, models.Model):
    """
    Membership of a user in a household.

    ``facility`` mirrors the household's facility so a user can hold at
    most one verified membership per facility.
    """

    class VerificationStatus(models.TextChoices):
        PENDING = 'pending', 'Pending'
        VERIFIED = 'verified', 'Verified'
        REJECTED = 'rejected', 'Rejected'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    household = models.ForeignKey(
        Household,
        on_delete=models.CASCADE,
        related_name='members'
    )
    facility = models.ForeignKey(
        Facility,
        on_delete=models.CASCADE,
        related_name='household_members',
        editable=False
    )
    user_id = models.UUIDField(db_index=True)
    is_primary = models.BooleanField(default=False)
    verification_status = models.CharField(
        max_length=20,
        choices=VerificationStatus.choices,
        default=VerificationStatus.PENDING
    )
    added_at = models.DateTimeField(default=timezone.now)
    verified_at = models.DateTimeField(blank=True, null=True)
    verified_by = models.UUIDField(blank=True, null=True)

    class Meta:
        db_table = 'household_members'
        ordering = ['household', '-is_primary', 'added_at']
        constraints = [
            models.UniqueConstraint(
                fields=['household', 'user_id'],
                name='unique_household_member'
            ),
            models.UniqueConstraint(
                fields=['household'],
                condition=Q(is_primary=True),
                name='single_primary_member'
            ),
            models.UniqueConstraint(
                fields=['facility', 'user_id'],
                condition=Q(verification_status='verified'),
                name='single_verified_membership'
            ),
        ]

    def __str__(self):
        return f"{self.user_id} in {self.household_id} ({self.verification_status})"

    def save(self, *args, **kwargs):
        self.facility_id = self.household.facility_id
        super().save(*args, **kwargs)
