# services/booking-service/src/apps/core/services/context_builder.py
"""
Context Builder

Gathers everything the rule functions read into one evaluation context.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Dict, Optional

from dateutil import tz as dateutil_tz
from django.conf import settings
from django.db import DatabaseError
from django.db.models import Q
from django.utils import timezone

from apps.core.models import (
    BookingCancellation,
    Court,
    CourtBlackout,
    Facility,
    FacilityAdmin,
    HouseholdMember,
    Reservation,
    Strike,
    UserTier,
)
from apps.core.rules.catalog import DataSource, RuleCode
from apps.core.rules.context import (
    BookingEvaluationContext,
    BookingRequest,
    CancellationContext,
    MembershipContext,
    PrimeTimeSchedule,
)
from apps.core.rules.timeutils import combine, week_window, WINDOW_CALENDAR_WEEK, WINDOW_ROLLING_7_DAYS

from .config_resolver import ConfigResolver, EffectiveRuleConfig
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


# =============================================================================
# Facility time
# =============================================================================

def facility_timezone(facility: Facility):
    """tzinfo of the facility, falling back to DEFAULT_FACILITY_TIMEZONE."""
    zone = dateutil_tz.gettz(facility.timezone) if facility.timezone else None
    if zone is None:
        zone = dateutil_tz.gettz(getattr(settings, 'DEFAULT_FACILITY_TIMEZONE', 'UTC'))
    return zone or dateutil_tz.UTC


def facility_now(facility: Facility, now: datetime = None) -> datetime:
    """
    ``now`` as an aware datetime in the facility time zone.

    A naive ``now`` is taken to already be facility-local.
    """
    zone = facility_timezone(facility)
    now = now or timezone.now()
    if timezone.is_naive(now):
        return now.replace(tzinfo=zone)
    return now.astimezone(zone)


class ContextBuilder:
    """
    Builds evaluation contexts.

    Facility, court and reservation reads are required: failures raise
    ContextUnavailableError. Tier, household, strike and rate-limit reads
    are optional: failures mark the source unavailable and the rules that
    need it fail closed.
    """

    def __init__(self, resolver: ConfigResolver = None, rate_limiter: RateLimiter = None):
        self.resolver = resolver or ConfigResolver()
        self.rate_limiter = rate_limiter or RateLimiter()

    # ==========================================================================
    # Booking phase
    # ==========================================================================

    def build(
        self,
        request: BookingRequest,
        now: datetime = None,
        configs: Dict[RuleCode, EffectiveRuleConfig] = None
    ) -> BookingEvaluationContext:
        from . import ContextUnavailableError

        facility, court = self._load_facility_and_court(request.facility_id, request.court_id)
        now = facility_now(facility, now)
        configs = configs or self.resolver.resolve_map(facility.id)

        try:
            courts = list(
                Court.objects.filter(facility_id=facility.id).prefetch_related('operating_configs')
            )
            is_admin = FacilityAdmin.is_admin(facility.id, request.user_id)
        except DatabaseError as e:
            raise ContextUnavailableError(f"Court catalog unavailable: {e}")

        ctx = BookingEvaluationContext(
            request=request,
            now=now,
            facility=facility,
            court=court,
            day_config=court.config_for(request.date),
            schedule=PrimeTimeSchedule.from_models(facility, courts),
            is_admin=is_admin,
        )

        self._load_tier(ctx)
        self._load_household(ctx)
        self._load_strikes(ctx, configs[RuleCode.ACC_009].params)
        self._load_rate_limits(ctx, configs[RuleCode.ACC_011].params)

        try:
            self._load_reservations(ctx)
            self._load_cancellations(ctx, configs[RuleCode.ACC_007].params)
            self._load_blackouts(ctx)
        except DatabaseError as e:
            raise ContextUnavailableError(f"Reservation store unavailable: {e}")

        if ctx.unavailable:
            logger.warning(
                f"Evaluating {request.user_id} at {facility.id} without: "
                f"{', '.join(sorted(s.value for s in ctx.unavailable))}"
            )
        return ctx

    def _load_facility_and_court(self, facility_id: uuid.UUID, court_id: uuid.UUID):
        from . import ContextUnavailableError

        try:
            facility = Facility.objects.get(id=facility_id)
            court = Court.objects.prefetch_related('operating_configs').get(
                id=court_id, facility_id=facility_id
            )
        except Facility.DoesNotExist:
            raise ContextUnavailableError(f"Facility {facility_id} not found")
        except Court.DoesNotExist:
            raise ContextUnavailableError(f"Court {court_id} not found at facility {facility_id}")
        except DatabaseError as e:
            raise ContextUnavailableError(f"Facility store unavailable: {e}")
        return facility, court

    def _load_tier(self, ctx: BookingEvaluationContext):
        try:
            ctx.tier = UserTier.effective_tier(ctx.facility.id, ctx.request.user_id, ctx.now)
        except DatabaseError as e:
            logger.warning(f"Tier store unavailable: {e}")
            ctx.unavailable.add(DataSource.TIER)

    def _load_household(self, ctx: BookingEvaluationContext):
        if not ctx.facility.uses_address_restrictions:
            return

        try:
            membership = (
                HouseholdMember.objects.select_related('household')
                .filter(
                    household__facility_id=ctx.facility.id,
                    user_id=ctx.request.user_id,
                    verification_status=HouseholdMember.VerificationStatus.VERIFIED,
                )
                .first()
            )
            if membership is not None:
                ctx.household = membership.household
                ctx.household_member_ids = membership.household.verified_user_ids()
        except DatabaseError as e:
            logger.warning(f"Household store unavailable: {e}")
            ctx.unavailable.add(DataSource.HOUSEHOLD)

    def _load_strikes(self, ctx: BookingEvaluationContext, params):
        try:
            ctx.strikes = list(Strike.qualifying(
                ctx.facility.id, ctx.request.user_id, ctx.now, params.strike_window_days
            ))
        except DatabaseError as e:
            logger.warning(f"Strike store unavailable: {e}")
            ctx.unavailable.add(DataSource.STRIKES)

    def _load_rate_limits(self, ctx: BookingEvaluationContext, params):
        try:
            ctx.rate_limit_counts, ctx.rate_limit_oldest = self.rate_limiter.window_stats(
                ctx.request.user_id,
                ctx.facility.id,
                params.window_seconds,
                actions=params.action_types,
                now=ctx.now,
            )
        except DatabaseError as e:
            logger.warning(f"Rate limit log unavailable: {e}")
            ctx.unavailable.add(DataSource.RATE_LIMIT)

    def _load_reservations(self, ctx: BookingEvaluationContext):
        request = ctx.request
        date_from = self.reservation_horizon_start(ctx)

        ctx.user_reservations = list(Reservation.get_for_users(
            ctx.facility.id, [request.user_id], date_from
        ))
        if ctx.household is not None:
            ctx.household_reservations = list(Reservation.get_for_users(
                ctx.facility.id, ctx.household_member_ids, date_from
            ))

        same_day = Reservation.objects.filter(
            facility_id=ctx.facility.id,
            date=request.date,
            status__in=Reservation.get_active_statuses(),
        )
        ctx.facility_reservations = list(same_day)
        ctx.court_reservations = [r for r in ctx.facility_reservations if r.court_id == request.court_id]

    @staticmethod
    def reservation_horizon_start(ctx: BookingEvaluationContext):
        """
        First date of existing reservations to load.

        The load is open-ended: active counts include reservations past
        the advance-booking window, such as admin overrides or bookings
        made before a tier downgrade.
        """
        today = ctx.today
        calendar_start, _ = week_window(WINDOW_CALENDAR_WEEK, today)
        rolling_start, _ = week_window(WINDOW_ROLLING_7_DAYS, today)
        return min(calendar_start, rolling_start)

    def _load_cancellations(self, ctx: BookingEvaluationContext, params):
        since = ctx.now - timedelta(minutes=params.cooldown_minutes)
        ctx.recent_cancellations = list(BookingCancellation.recent_for_user(
            ctx.facility.id, ctx.request.user_id, since
        ))

    def _load_blackouts(self, ctx: BookingEvaluationContext):
        request = ctx.request
        day_start = combine(request.date, datetime.min.time(), ctx.tz)
        day_end = day_start + timedelta(days=1)

        ctx.blackouts = list(
            CourtBlackout.objects.filter(facility_id=ctx.facility.id, is_active=True)
            .filter(Q(court__isnull=True) | Q(court_id=request.court_id))
            .filter(
                ~Q(recurrence_rule='')
                | Q(start_datetime__lt=day_end, end_datetime__gt=day_start)
            )
        )

    # ==========================================================================
    # Cancellation and membership phases
    # ==========================================================================

    def build_cancellation(self, reservation: Reservation, now: datetime = None) -> CancellationContext:
        from . import ContextUnavailableError

        try:
            court = reservation.court
            facility = reservation.facility
        except DatabaseError as e:
            raise ContextUnavailableError(f"Facility store unavailable: {e}")

        zone = facility_timezone(facility)
        return CancellationContext(
            reservation=reservation,
            court=court,
            now=facility_now(facility, now),
            starts_at=reservation.start_datetime(zone),
        )

    def build_membership(self, household) -> MembershipContext:
        return MembershipContext(
            household=household,
            verified_member_count=household.verified_members.count(),
        )

    def effective_tier_id(self, facility_id: uuid.UUID, user_id: uuid.UUID, now: datetime) -> Optional[uuid.UUID]:
        tier = UserTier.effective_tier(facility_id, user_id, now)
        return tier.id if tier is not None else None
