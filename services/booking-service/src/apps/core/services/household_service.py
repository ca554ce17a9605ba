# services/booking-service/src/apps/core/services/household_service.py
"""
Household Service

Address-based households and their members.
"""

import logging
import uuid
from typing import List

from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.core.models import Household, HouseholdMember, normalize_address
from apps.core.rules.catalog import RuleCode

from .config_resolver import ConfigResolver
from .context_builder import ContextBuilder
from .evaluator import Evaluator

logger = logging.getLogger(__name__)


class HouseholdService:
    """
    Service for households.

    Adding or verifying a member re-checks the household size cap (HH-001)
    when that rule is enabled for the facility.
    """

    def __init__(self, resolver: ConfigResolver = None, evaluator: Evaluator = None):
        self.resolver = resolver or ConfigResolver()
        self.evaluator = evaluator or Evaluator()
        self.builder = ContextBuilder(self.resolver)

    # ==========================================================================
    # Households
    # ==========================================================================

    @transaction.atomic
    def create_household(
        self,
        facility_id: uuid.UUID,
        street_address: str,
        city: str = '',
        state: str = '',
        zip_code: str = '',
        household_name: str = '',
        **limits
    ) -> Household:
        """Create a household; the address must be unique after normalization."""
        from . import HouseholdError

        if not (street_address or '').strip():
            raise HouseholdError("Street address is required")

        normalized = normalize_address(' '.join(filter(None, [street_address, city, state, zip_code])))
        if Household.objects.filter(facility_id=facility_id, normalized_address=normalized).exists():
            raise HouseholdError("A household already exists at this address")

        try:
            household = Household.objects.create(
                facility_id=facility_id,
                household_name=household_name,
                street_address=street_address,
                city=city,
                state=state,
                zip_code=zip_code,
                **limits
            )
        except IntegrityError:
            raise HouseholdError("A household already exists at this address")

        logger.info(f"Created household {household.id} at facility {facility_id}")
        return household

    def get_household(self, household_id: uuid.UUID, for_update: bool = False) -> Household:
        from . import HouseholdError

        queryset = Household.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(id=household_id)
        except Household.DoesNotExist:
            raise HouseholdError(f"Household {household_id} not found")

    def list_households(self, facility_id: uuid.UUID) -> List[Household]:
        return list(Household.objects.filter(facility_id=facility_id).prefetch_related('members'))

    # ==========================================================================
    # Members
    # ==========================================================================

    @transaction.atomic
    def add_member(
        self,
        household_id: uuid.UUID,
        user_id: uuid.UUID,
        is_primary: bool = False,
        verified: bool = False,
        verified_by: uuid.UUID = None
    ) -> HouseholdMember:
        from . import HouseholdError

        household = self.get_household(household_id, for_update=True)

        if household.members.filter(user_id=user_id).exists():
            raise HouseholdError(f"User {user_id} is already a member of this household")
        self._check_not_verified_elsewhere(household, user_id)

        self._check_capacity(household)
        if is_primary:
            household.members.filter(is_primary=True).update(is_primary=False)

        now = timezone.now()
        member = HouseholdMember.objects.create(
            household=household,
            user_id=user_id,
            is_primary=is_primary,
            verification_status=(
                HouseholdMember.VerificationStatus.VERIFIED if verified
                else HouseholdMember.VerificationStatus.PENDING
            ),
            verified_at=now if verified else None,
            verified_by=verified_by if verified else None,
        )
        logger.info(f"Added {user_id} to household {household_id}")
        return member

    @transaction.atomic
    def verify_member(self, household_id: uuid.UUID, user_id: uuid.UUID, verified_by: uuid.UUID = None) -> HouseholdMember:
        household = self.get_household(household_id, for_update=True)
        member = self._get_member(household, user_id)

        if member.verification_status != HouseholdMember.VerificationStatus.VERIFIED:
            self._check_not_verified_elsewhere(household, user_id)
            self._check_capacity(household)

        member.verification_status = HouseholdMember.VerificationStatus.VERIFIED
        member.verified_at = timezone.now()
        member.verified_by = verified_by
        member.save(update_fields=['verification_status', 'verified_at', 'verified_by', 'updated_at'])

        logger.info(f"Verified {user_id} in household {household_id}")
        return member

    @transaction.atomic
    def reject_member(self, household_id: uuid.UUID, user_id: uuid.UUID, rejected_by: uuid.UUID = None) -> HouseholdMember:
        household = self.get_household(household_id, for_update=True)
        member = self._get_member(household, user_id)

        member.verification_status = HouseholdMember.VerificationStatus.REJECTED
        member.verified_at = None
        member.verified_by = rejected_by
        member.is_primary = False
        member.save(update_fields=[
            'verification_status', 'verified_at', 'verified_by', 'is_primary', 'updated_at'
        ])

        logger.info(f"Rejected {user_id} from household {household_id}")
        return member

    @transaction.atomic
    def remove_member(self, household_id: uuid.UUID, user_id: uuid.UUID):
        household = self.get_household(household_id, for_update=True)
        member = self._get_member(household, user_id)
        member.delete()
        logger.info(f"Removed {user_id} from household {household_id}")

    @transaction.atomic
    def set_primary(self, household_id: uuid.UUID, user_id: uuid.UUID) -> HouseholdMember:
        from . import HouseholdError

        household = self.get_household(household_id, for_update=True)
        member = self._get_member(household, user_id)
        if member.verification_status != HouseholdMember.VerificationStatus.VERIFIED:
            raise HouseholdError("Only a verified member can be the primary member")

        household.members.filter(is_primary=True).exclude(id=member.id).update(is_primary=False)
        member.is_primary = True
        member.save(update_fields=['is_primary', 'updated_at'])
        return member

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def _check_not_verified_elsewhere(self, household: Household, user_id: uuid.UUID):
        from . import HouseholdError

        verified_elsewhere = HouseholdMember.objects.filter(
            facility_id=household.facility_id,
            user_id=user_id,
            verification_status=HouseholdMember.VerificationStatus.VERIFIED,
        ).exclude(household=household)
        if verified_elsewhere.exists():
            raise HouseholdError(f"User {user_id} already belongs to a household at this facility")

    def _get_member(self, household: Household, user_id: uuid.UUID) -> HouseholdMember:
        from . import HouseholdError

        try:
            return household.members.get(user_id=user_id)
        except HouseholdMember.DoesNotExist:
            raise HouseholdError(f"User {user_id} is not a member of this household")

    def _check_capacity(self, household: Household):
        """Raise HouseholdCapacityError when HH-001 blocks another verified member."""
        from . import HouseholdCapacityError

        config = self.resolver.resolve(household.facility_id, RuleCode.HH_001)
        result = self.evaluator.evaluate_membership(self.builder.build_membership(household), config)
        if result is not None and result.is_blocking:
            logger.warning(f"Household {household.id} is full: {result.message}")
            raise HouseholdCapacityError(result.message)
