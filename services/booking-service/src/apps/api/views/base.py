# services/booking-service/src/apps/api/views/base.py
"""
Base Views and Mixins

Common functionality for Booking Policy API views.
"""

import logging
from uuid import UUID

from apps.core.models import Facility, FacilityAdmin
from apps.core.services import (
    PolicyServiceError,
    UnknownRuleError,
    RuleConfigurationError,
    ContextUnavailableError,
    ReservationConflictError,
    ReservationNotFoundError,
    TierConfigurationError,
    HouseholdError,
    HouseholdCapacityError,
    StrikeError,
    AdminOverrideError,
)
from shared.common.exceptions import (
    ValidationException,
    ForbiddenException,
    NotFoundException,
    ConflictException,
    ServiceUnavailableException,
    ReservationConflictException,
)

logger = logging.getLogger(__name__)


class ExceptionHandlerMixin:
    """Mixin for converting service layer exceptions to API exceptions."""

    def handle_exception(self, exc):
        """Convert service exceptions, then let DRF format the response."""
        if isinstance(exc, PolicyServiceError):
            exc = self.convert_service_error(exc)
        return super().handle_exception(exc)

    def convert_service_error(self, exc: PolicyServiceError):
        message = str(exc)

        if isinstance(exc, (UnknownRuleError, ReservationNotFoundError)):
            return NotFoundException(detail=message)

        if isinstance(exc, RuleConfigurationError):
            return ValidationException(
                {exc.field or 'non_field_errors': [message]},
                detail=message
            )

        if isinstance(exc, ContextUnavailableError):
            logger.warning(f"Policy context unavailable: {message}")
            return ServiceUnavailableException(detail=message)

        if isinstance(exc, ReservationConflictError):
            return ReservationConflictException(detail=message)

        if isinstance(exc, (HouseholdCapacityError, StrikeError)):
            return ConflictException(detail=message)

        if isinstance(exc, (TierConfigurationError, HouseholdError)):
            return ValidationException({'non_field_errors': [message]}, detail=message)

        if isinstance(exc, AdminOverrideError):
            return ForbiddenException(detail=message)

        return ValidationException({'non_field_errors': [message]}, detail=message)


class FacilityAdminMixin:
    """Mixin for facility-scoped admin checks."""

    def get_facility(self, facility_id) -> Facility:
        try:
            return Facility.objects.get(id=facility_id)
        except (Facility.DoesNotExist, ValueError):
            raise NotFoundException(detail=f"Facility {facility_id} not found")

    def require_facility_admin(self, facility_id: UUID):
        """Raise 403 unless the caller administers the facility."""
        user_id = getattr(self.request.user, 'id', None)
        if user_id is None or not FacilityAdmin.is_admin(facility_id, user_id):
            raise ForbiddenException(detail='Facility admin access required')

    def is_facility_admin(self, facility_id: UUID) -> bool:
        user_id = getattr(self.request.user, 'id', None)
        return user_id is not None and FacilityAdmin.is_admin(facility_id, user_id)
