# services/booking-service/src/apps/core/services/reservation_guard.py
"""
Reservation Guard

Serializes commits per account and per (court, date) and re-checks the
conflicts an evaluation can race with before inserting the reservation.
"""

import hashlib
import logging
import threading
import uuid
from datetime import date, datetime
from typing import Dict, List

from django.db import transaction
from django.utils import timezone

from apps.core.models import AccountBookingLock, CourtDayLock, Reservation
from apps.core.rules.catalog import RuleCode
from apps.core.rules.context import BookingRequest
from apps.core.rules.timeutils import format_time, ranges_overlap, week_window

from .config_resolver import EffectiveRuleConfig

logger = logging.getLogger(__name__)


LOCK_STRIPES = 64

_stripes = [threading.Lock() for _ in range(LOCK_STRIPES)]


def stripe_index(*parts) -> int:
    key = ':'.join(str(part) for part in parts)
    return int(hashlib.md5(key.encode()).hexdigest(), 16) % LOCK_STRIPES


def commit_stripes(request: BookingRequest) -> List[threading.Lock]:
    """
    In-process locks for the account and the court-day, in stripe order.

    The pool is fixed; unrelated keys sharing a stripe only wait on each
    other.
    """
    indexes = {
        stripe_index('account', request.facility_id, request.user_id),
        stripe_index('court', request.court_id, request.date),
    }
    return [_stripes[i] for i in sorted(indexes)]


class ReservationGuard:
    """
    Commits reservations.

    The ``AccountBookingLock`` row and then the ``CourtDayLock`` row are
    locked with ``select_for_update`` for the rest of the transaction.
    The in-process stripes cover databases without row locks.
    """

    # Rules re-checked under the lock
    GUARDED_RULES = (RuleCode.ACC_004, RuleCode.CRT_010)

    def commit(
        self,
        request: BookingRequest,
        is_prime_time: bool = False,
        enforce_configs: Dict[RuleCode, EffectiveRuleConfig] = None,
        rule_overrides: List[str] = None,
        override_reason: str = '',
        overridden_by: uuid.UUID = None,
        created_by: uuid.UUID = None,
        now: datetime = None
    ) -> Reservation:
        """
        Insert the reservation or raise ReservationConflictError.

        ``enforce_configs`` holds the guarded rules that applied to this
        request; an override commit passes none.
        """
        now = now or timezone.now()
        enforce_configs = enforce_configs or {}

        stripes = commit_stripes(request)
        for stripe in stripes:
            stripe.acquire()
        try:
            with transaction.atomic():
                account_lock = self._lock_account(request.facility_id, request.user_id)
                day_lock = self._lock_court_day(request.court_id, request.date)

                self._check_court_collision(request)
                if RuleCode.ACC_004 in enforce_configs:
                    self._check_user_overlap(request, enforce_configs[RuleCode.ACC_004].params)
                if RuleCode.CRT_010 in enforce_configs:
                    self._check_court_weekly_cap(request, enforce_configs[RuleCode.CRT_010].params, now)

                reservation = Reservation.objects.create(
                    facility_id=request.facility_id,
                    court_id=request.court_id,
                    user_id=request.user_id,
                    date=request.date,
                    start_time=request.start_time,
                    end_time=request.end_time,
                    duration_minutes=request.duration_minutes,
                    booking_type=request.booking_type or Reservation.BookingType.REGULAR,
                    activity_type=request.activity_type,
                    notes=request.notes,
                    is_prime_time=is_prime_time,
                    rule_overrides=list(rule_overrides or []),
                    override_reason=override_reason or '',
                    overridden_by=overridden_by,
                    created_by=created_by or request.user_id,
                )

                for lock in (account_lock, day_lock):
                    lock.last_committed_at = now
                    lock.save(update_fields=['last_committed_at'])
        finally:
            for stripe in reversed(stripes):
                stripe.release()

        logger.info(
            f"Committed reservation {reservation.id} on court {request.court_id} "
            f"{request.date} {format_time(request.start_time)}-{format_time(request.end_time)}"
        )
        return reservation

    def _lock_account(self, facility_id: uuid.UUID, user_id: uuid.UUID) -> AccountBookingLock:
        AccountBookingLock.objects.get_or_create(facility_id=facility_id, user_id=user_id)
        return AccountBookingLock.objects.select_for_update().get(facility_id=facility_id, user_id=user_id)

    def _lock_court_day(self, court_id: uuid.UUID, on_date: date) -> CourtDayLock:
        CourtDayLock.objects.get_or_create(court_id=court_id, date=on_date)
        return CourtDayLock.objects.select_for_update().get(court_id=court_id, date=on_date)

    def _check_court_collision(self, request: BookingRequest):
        from . import ReservationConflictError

        collision = Reservation.get_court_collisions(
            request.court_id, request.date, request.start_time, request.end_time
        ).first()
        if collision is not None:
            logger.warning(
                f"Court {request.court_id} slot {request.date} "
                f"{format_time(request.start_time)} already taken by {collision.id}"
            )
            raise ReservationConflictError(
                f"This court was just booked from {format_time(collision.start_time)} "
                f"to {format_time(collision.end_time)}. Please choose another time."
            )

    def _check_user_overlap(self, request: BookingRequest, params):
        from . import ReservationConflictError

        if params.allow_overlap:
            return

        existing = Reservation.objects.filter(
            facility_id=request.facility_id,
            user_id=request.user_id,
            date=request.date,
            status__in=Reservation.get_active_statuses(),
        )
        for reservation in existing:
            if ranges_overlap(
                request.start_time, request.end_time,
                reservation.start_time, reservation.end_time,
                params.overlap_grace_minutes,
            ):
                raise ReservationConflictError(
                    "You already have a reservation at this time."
                )

    def _check_court_weekly_cap(self, request: BookingRequest, params, now: datetime):
        from . import ReservationConflictError

        start, end = week_window(params.window_type, now.date())
        current = Reservation.objects.filter(
            court_id=request.court_id,
            user_id=request.user_id,
            date__gte=start,
            date__lte=end,
        ).exclude(status=Reservation.Status.CANCELLED).count()

        if current >= params.max_per_week_per_account:
            raise ReservationConflictError(
                f"Weekly limit for this court reached ({current}/{params.max_per_week_per_account})."
            )
