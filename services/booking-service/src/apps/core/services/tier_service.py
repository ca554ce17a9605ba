# services/booking-service/src/apps/core/services/tier_service.py
"""
Tier Service

Membership tier management and user assignment.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.core.models import MembershipTier, UserTier

logger = logging.getLogger(__name__)


TIER_FIELDS = (
    'tier_name',
    'tier_level',
    'description',
    'advance_booking_days',
    'prime_time_eligible',
    'prime_time_max_per_week',
    'max_active_reservations',
    'max_reservations_per_week',
    'max_minutes_per_week',
    'is_default',
)

LIMIT_FIELDS = (
    'advance_booking_days',
    'prime_time_max_per_week',
    'max_active_reservations',
    'max_reservations_per_week',
    'max_minutes_per_week',
)


class TierService:
    """
    Service for membership tiers.

    Each facility has at most one default tier and unique tier levels.
    Making a tier the default clears the flag on the previous default.
    """

    # ==========================================================================
    # Tier CRUD
    # ==========================================================================

    @transaction.atomic
    def create_tier(self, facility_id: uuid.UUID, tier_name: str, tier_level: int, **kwargs) -> MembershipTier:
        from . import TierConfigurationError

        unknown = set(kwargs) - set(TIER_FIELDS)
        if unknown:
            raise TierConfigurationError(f"Unknown tier field: {sorted(unknown)[0]}")

        values = {'tier_name': tier_name, 'tier_level': tier_level, **kwargs}
        self._validate(values)
        self._check_level(facility_id, tier_level)

        if values.get('is_default'):
            self._clear_default(facility_id)

        try:
            tier = MembershipTier.objects.create(facility_id=facility_id, **values)
        except IntegrityError as e:
            raise TierConfigurationError(f"Could not create tier: {e}")

        logger.info(f"Created tier {tier_name} (level {tier_level}) for facility {facility_id}")
        return tier

    @transaction.atomic
    def update_tier(self, tier_id: uuid.UUID, **kwargs) -> MembershipTier:
        from . import TierConfigurationError

        tier = self.get_tier(tier_id, for_update=True)

        unknown = set(kwargs) - set(TIER_FIELDS)
        if unknown:
            raise TierConfigurationError(f"Unknown tier field: {sorted(unknown)[0]}")
        self._validate(kwargs)

        if 'tier_level' in kwargs and kwargs['tier_level'] != tier.tier_level:
            self._check_level(tier.facility_id, kwargs['tier_level'], exclude_id=tier.id)
        if kwargs.get('is_default') and not tier.is_default:
            self._clear_default(tier.facility_id)

        for name, value in kwargs.items():
            setattr(tier, name, value)
        tier.save()

        logger.info(f"Updated tier {tier.id}")
        return tier

    @transaction.atomic
    def delete_tier(self, tier_id: uuid.UUID):
        """Delete a tier; its assignments go with it."""
        tier = self.get_tier(tier_id, for_update=True)
        assignments = tier.assignments.count()
        tier.delete()
        logger.info(f"Deleted tier {tier_id} and {assignments} assignments")

    def get_tier(self, tier_id: uuid.UUID, for_update: bool = False) -> MembershipTier:
        from . import TierConfigurationError

        queryset = MembershipTier.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(id=tier_id)
        except MembershipTier.DoesNotExist:
            raise TierConfigurationError(f"Tier {tier_id} not found")

    def list_tiers(self, facility_id: uuid.UUID) -> List[MembershipTier]:
        return list(MembershipTier.objects.filter(facility_id=facility_id).order_by('tier_level'))

    # ==========================================================================
    # Assignment
    # ==========================================================================

    @transaction.atomic
    def assign_tier(
        self,
        tier_id: uuid.UUID,
        user_id: uuid.UUID,
        assigned_by: uuid.UUID = None,
        expires_at: datetime = None
    ) -> UserTier:
        """Assign (or reassign) a user to a tier."""
        from . import TierConfigurationError

        tier = self.get_tier(tier_id)
        if expires_at is not None and expires_at <= timezone.now():
            raise TierConfigurationError("Assignment expiry must be in the future")

        assignment, created = UserTier.objects.update_or_create(
            facility_id=tier.facility_id,
            user_id=user_id,
            defaults={
                'tier': tier,
                'assigned_by': assigned_by,
                'assigned_at': timezone.now(),
                'expires_at': expires_at,
            }
        )
        logger.info(
            f"{'Assigned' if created else 'Reassigned'} {user_id} to tier {tier.tier_name}"
        )
        return assignment

    @transaction.atomic
    def unassign_tier(self, tier_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        deleted, _ = UserTier.objects.filter(tier_id=tier_id, user_id=user_id).delete()
        if deleted:
            logger.info(f"Removed {user_id} from tier {tier_id}")
        return bool(deleted)

    def get_effective_tier(
        self,
        facility_id: uuid.UUID,
        user_id: uuid.UUID,
        now: datetime = None
    ) -> Optional[MembershipTier]:
        return UserTier.effective_tier(facility_id, user_id, now)

    # ==========================================================================
    # Validation
    # ==========================================================================

    def _validate(self, values: dict):
        from . import TierConfigurationError

        if 'tier_name' in values and not str(values['tier_name'] or '').strip():
            raise TierConfigurationError("Tier name is required")
        if 'tier_level' in values:
            level = values['tier_level']
            if isinstance(level, bool) or not isinstance(level, int):
                raise TierConfigurationError("tier_level must be an integer")

        for name in LIMIT_FIELDS:
            value = values.get(name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise TierConfigurationError(f"{name} must be a non-negative integer")

    def _check_level(self, facility_id: uuid.UUID, tier_level: int, exclude_id: uuid.UUID = None):
        from . import TierConfigurationError

        queryset = MembershipTier.objects.filter(facility_id=facility_id, tier_level=tier_level)
        if exclude_id:
            queryset = queryset.exclude(id=exclude_id)
        if queryset.exists():
            raise TierConfigurationError(f"Tier level {tier_level} already exists at this facility")

    def _clear_default(self, facility_id: uuid.UUID):
        MembershipTier.objects.select_for_update().filter(
            facility_id=facility_id, is_default=True
        ).update(is_default=False)
