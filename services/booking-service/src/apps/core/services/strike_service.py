# services/booking-service/src/apps/core/services/strike_service.py
"""
Strike Tracker

Issues and revokes strikes and derives lockout state from the ledger.
"""

import logging
import uuid
from datetime import datetime
from typing import List

from django.db import transaction
from django.utils import timezone

from apps.core.models import Reservation, Strike
from apps.core.rules.account import StrikeStatus, derive_strike_status
from apps.core.rules.catalog import RuleCode
from apps.core.events import (
    publish_account_locked_out,
    publish_reservation_no_show,
    publish_strike_issued,
    publish_strike_revoked,
)

from .config_resolver import ConfigResolver

logger = logging.getLogger(__name__)


class StrikeTracker:
    """
    Strike ledger operations.

    Lockout is never stored: ``status`` recomputes it from the strikes
    and the facility's ACC-009 parameters on every call.
    """

    def __init__(self, resolver: ConfigResolver = None):
        self.resolver = resolver or ConfigResolver()

    # ==========================================================================
    # Status
    # ==========================================================================

    def load_strikes(
        self,
        facility_id: uuid.UUID,
        user_id: uuid.UUID,
        now: datetime,
        window_days: int
    ) -> List[Strike]:
        return list(Strike.qualifying(facility_id, user_id, now, window_days))

    def status(
        self,
        user_id: uuid.UUID,
        facility_id: uuid.UUID,
        now: datetime = None
    ) -> StrikeStatus:
        now = now or timezone.now()
        params = self.resolver.resolve(facility_id, RuleCode.ACC_009).params
        strikes = self.load_strikes(facility_id, user_id, now, params.strike_window_days)
        return derive_strike_status(strikes, params, now)

    def list_strikes(
        self,
        facility_id: uuid.UUID,
        user_id: uuid.UUID = None,
        include_revoked: bool = True
    ):
        queryset = Strike.objects.filter(facility_id=facility_id)
        if user_id:
            queryset = queryset.filter(user_id=user_id)
        if not include_revoked:
            queryset = queryset.filter(revoked=False)
        return queryset.order_by('-issued_at')

    # ==========================================================================
    # Ledger writes
    # ==========================================================================

    @transaction.atomic
    def issue_strike(
        self,
        facility_id: uuid.UUID,
        user_id: uuid.UUID,
        strike_type: str,
        reason: str = '',
        issued_by: uuid.UUID = None,
        related_reservation: Reservation = None,
        expires_at: datetime = None,
        now: datetime = None
    ) -> Strike:
        """Append a strike; publishes a lockout event when it crosses the threshold."""
        from . import StrikeError

        if strike_type not in Strike.StrikeType.values:
            raise StrikeError(f"Invalid strike type: {strike_type}")

        now = now or timezone.now()
        if expires_at is not None and expires_at <= now:
            raise StrikeError("Strike expiry must be in the future")

        before = self.status(user_id, facility_id, now)

        strike = Strike.objects.create(
            facility_id=facility_id,
            user_id=user_id,
            strike_type=strike_type,
            strike_reason=reason or '',
            related_reservation=related_reservation,
            issued_at=now,
            issued_by=issued_by,
            expires_at=expires_at,
        )
        logger.info(f"Issued {strike_type} strike to {user_id} at facility {facility_id}")
        publish_strike_issued(strike)

        after = self.status(user_id, facility_id, now)
        if after.is_locked_out and not before.is_locked_out:
            logger.warning(
                f"User {user_id} locked out at facility {facility_id} "
                f"until {after.lockout_ends_at.isoformat()}"
            )
            publish_account_locked_out(facility_id, user_id, after.lockout_ends_at)

        return strike

    @transaction.atomic
    def revoke_strike(
        self,
        strike_id: uuid.UUID,
        revoked_by: uuid.UUID,
        reason: str,
        now: datetime = None
    ) -> Strike:
        """Revoke a strike. Lockout can only move toward clear."""
        from . import StrikeError

        try:
            strike = Strike.objects.select_for_update().get(id=strike_id)
        except Strike.DoesNotExist:
            raise StrikeError(f"Strike {strike_id} not found")

        if strike.revoked:
            raise StrikeError("Strike is already revoked")

        strike.revoke(revoked_by, reason, at=now)
        logger.info(f"Revoked strike {strike_id} for {strike.user_id}")
        publish_strike_revoked(strike)
        return strike

    @transaction.atomic
    def mark_no_show(
        self,
        reservation: Reservation,
        marked_by: uuid.UUID = None,
        now: datetime = None
    ) -> Strike:
        """Flag a reservation as a no-show and issue a no_show strike."""
        from . import StrikeError

        now = now or timezone.now()
        try:
            reservation.mark_no_show(at=now)
        except ValueError as e:
            raise StrikeError(str(e))

        publish_reservation_no_show(reservation)
        return self.issue_strike(
            facility_id=reservation.facility_id,
            user_id=reservation.user_id,
            strike_type=Strike.StrikeType.NO_SHOW,
            reason=f"No-show for reservation on {reservation.date.isoformat()}",
            issued_by=marked_by,
            related_reservation=reservation,
            now=now,
        )
