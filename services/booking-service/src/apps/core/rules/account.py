# services/booking-service/src/apps/core/rules/account.py
"""
Account rules (ACC-001 to ACC-011).

Each evaluator is a pure function of the evaluation context and the
rule's typed parameters.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Optional

from .catalog import (
    RuleCode, RULES_BY_CODE, PENALTY_STRIKE,
    LateCancelParams, StrikeLockoutParams,
)
from .context import ACTIVE_STATUSES, CANCELLED
from .outcomes import PASS, Advisory, Violation
from .timeutils import combine, format_time, minutes_between, parse_time, ranges_overlap


def violation(code: RuleCode, **values) -> Violation:
    """Violation rendered from the catalog failure template."""
    template = RULES_BY_CODE[code].failure_message_template
    return Violation(template.format(**values), details=values)


def _in_window(reservation, start, end) -> bool:
    return start <= reservation.date <= end


# =============================================================================
# STRIKES
# =============================================================================

class StrikeState(str, Enum):
    CLEAR = 'clear'
    WARNED = 'warned'
    LOCKED_OUT = 'locked_out'


@dataclass
class StrikeStatus:
    state: StrikeState
    active_strikes: int
    threshold: int
    lockout_ends_at: Optional[datetime] = None

    @property
    def is_locked_out(self) -> bool:
        return self.state == StrikeState.LOCKED_OUT

    def to_dict(self):
        return {
            'state': self.state.value,
            'active_strikes': self.active_strikes,
            'threshold': self.threshold,
            'lockout_ends_at': self.lockout_ends_at.isoformat() if self.lockout_ends_at else None,
        }


def derive_strike_status(
    strikes: Iterable,
    params: StrikeLockoutParams,
    now: datetime
) -> StrikeStatus:
    """
    Lockout state from the strike ledger.

    Qualifying strikes are unrevoked, unexpired and issued within the
    trailing window. At or above the threshold the user is locked out
    until the newest qualifying strike plus ``lockout_days``.
    """
    window_start = now - timedelta(days=params.strike_window_days)
    qualifying = [
        s for s in strikes
        if s.is_active_at(now) and window_start <= s.issued_at <= now
    ]
    count = len(qualifying)

    if count >= params.strike_threshold:
        latest = max(s.issued_at for s in qualifying)
        ends_at = latest + timedelta(days=params.lockout_days)
        if ends_at > now:
            return StrikeStatus(StrikeState.LOCKED_OUT, count, params.strike_threshold, ends_at)

    state = StrikeState.WARNED if count else StrikeState.CLEAR
    return StrikeStatus(state, count, params.strike_threshold)


def rate_limit_retry_after(oldest: Optional[datetime], window_seconds: int, now: datetime) -> int:
    """Seconds until the oldest counted action leaves the window."""
    if oldest is None:
        return 0
    remaining = (oldest + timedelta(seconds=window_seconds) - now).total_seconds()
    return max(0, math.ceil(remaining))


# =============================================================================
# BOOKING-PHASE EVALUATORS
# =============================================================================

def max_active_reservations(ctx, params):
    """ACC-001"""
    limit = ctx.tier_limit('max_active_reservations', params.max_active_reservations)
    states = set(params.count_states)
    current = sum(
        1 for r in ctx.user_reservations
        if r.status in states and r.date >= ctx.today
    )
    if current >= limit:
        return violation(RuleCode.ACC_001, current=current, max=limit)
    return PASS


def max_bookings_per_week(ctx, params):
    """ACC-002"""
    limit = ctx.tier_limit('max_reservations_per_week', params.max_per_week)
    start, end = ctx.week_window(params.window_type)
    current = sum(
        1 for r in ctx.user_reservations
        if _in_window(r, start, end) and (params.include_canceled or r.status != CANCELLED)
    )
    if current >= limit:
        return violation(
            RuleCode.ACC_002,
            current=current,
            max=limit,
            next_eligible_date=(end + timedelta(days=1)).isoformat(),
        )
    return PASS


def max_minutes_per_week(ctx, params):
    """ACC-003"""
    limit = ctx.tier_limit('max_minutes_per_week', params.max_minutes_per_week)
    start, end = ctx.week_window(params.window_type)
    current = sum(
        r.duration_minutes for r in ctx.user_reservations
        if _in_window(r, start, end) and r.status != CANCELLED
    )
    if current + ctx.request.duration_minutes > limit:
        return violation(RuleCode.ACC_003, current_minutes=current, max_minutes=limit)
    return PASS


def no_overlap(ctx, params):
    """ACC-004"""
    if params.allow_overlap:
        return PASS

    request = ctx.request
    for existing in ctx.user_reservations:
        if existing.date != request.date or existing.status not in ACTIVE_STATUSES:
            continue
        if ranges_overlap(
            request.start_time, request.end_time,
            existing.start_time, existing.end_time,
            params.overlap_grace_minutes,
        ):
            return violation(
                RuleCode.ACC_004,
                other_reservation=(
                    f"{format_time(existing.start_time)}-{format_time(existing.end_time)}"
                ),
            )
    return PASS


def advance_window(ctx, params):
    """ACC-005"""
    if ctx.tier is not None:
        limit = ctx.tier.advance_booking_days
    else:
        limit = params.max_days_ahead

    days_ahead = (ctx.request.date - ctx.today).days
    latest = ctx.today + timedelta(days=limit)

    if days_ahead > limit:
        return violation(
            RuleCode.ACC_005,
            max_days_ahead=limit,
            latest_allowed_date=latest.isoformat(),
        )

    # The furthest day only opens at the configured local time.
    if params.open_time_local and days_ahead == limit:
        if ctx.now.time() < parse_time(params.open_time_local):
            return violation(
                RuleCode.ACC_005,
                max_days_ahead=limit,
                latest_allowed_date=(latest - timedelta(days=1)).isoformat(),
            )
    return PASS


def minimum_lead_time(ctx, params):
    """ACC-006"""
    starts_at = combine(ctx.request.date, ctx.request.start_time, ctx.tz)
    if minutes_between(ctx.now, starts_at) < params.min_minutes_before_start:
        return violation(RuleCode.ACC_006, min_minutes=params.min_minutes_before_start)
    return PASS


def cancellation_cooldown(ctx, params):
    """ACC-007"""
    request = ctx.request
    for cancellation in ctx.recent_cancellations:
        reservation = cancellation.reservation
        if reservation.court_id != request.court_id or reservation.date != request.date:
            continue
        if not ranges_overlap(
            request.start_time, request.end_time,
            reservation.start_time, reservation.end_time,
        ):
            continue

        within = params.only_if_within_minutes_of_start
        if within is not None and cancellation.minutes_before_start > within:
            continue

        if minutes_between(cancellation.cancelled_at, ctx.now) < params.cooldown_minutes:
            ends_at = cancellation.cancelled_at + timedelta(minutes=params.cooldown_minutes)
            return violation(
                RuleCode.ACC_007,
                cooldown_ends_at=ends_at.astimezone(ctx.tz).strftime('%H:%M'),
            )
    return PASS


def strike_lockout(ctx, params):
    """ACC-009"""
    status = derive_strike_status(ctx.strikes, params, ctx.now)
    if status.is_locked_out:
        return violation(
            RuleCode.ACC_009,
            lockout_ends_at=status.lockout_ends_at.astimezone(ctx.tz).strftime('%Y-%m-%d %H:%M'),
        )
    return PASS


def prime_time_weekly_cap(ctx, params):
    """ACC-010"""
    if not ctx.is_prime_time:
        return PASS

    limit = ctx.tier_limit('prime_time_max_per_week', params.max_prime_per_week)
    start, end = ctx.week_window(params.window_type)
    current = sum(
        1 for r in ctx.user_reservations
        if _in_window(r, start, end)
        and r.status != CANCELLED
        and ctx.schedule.is_prime_reservation(r)
    )
    if current >= limit:
        return violation(RuleCode.ACC_010, current=current, max=limit)
    return PASS


def rate_limit(ctx, params):
    """ACC-011"""
    current = sum(ctx.rate_limit_counts.get(action, 0) for action in params.action_types)
    if current >= params.max_actions:
        oldest = [
            ctx.rate_limit_oldest[action]
            for action in params.action_types
            if ctx.rate_limit_oldest.get(action)
        ]
        return violation(
            RuleCode.ACC_011,
            retry_after_seconds=rate_limit_retry_after(
                min(oldest) if oldest else None, params.window_seconds, ctx.now
            ),
            current=current,
            max=params.max_actions,
        )
    return PASS


# =============================================================================
# CANCELLATION-PHASE EVALUATORS
# =============================================================================

def late_cancellation(cancel_ctx, params: LateCancelParams):
    """ACC-008: advisory when cancelling inside the cutoff."""
    if cancel_ctx.minutes_before_start >= params.late_cancel_cutoff_minutes:
        return PASS

    if params.penalty_type == PENALTY_STRIKE:
        penalty = f"{params.penalty_value} strike(s)"
    else:
        penalty = 'warning'

    template = RULES_BY_CODE[RuleCode.ACC_008].failure_message_template
    values = {
        'cutoff': params.late_cancel_cutoff_minutes,
        'penalty': penalty,
        'penalty_type': params.penalty_type,
        'penalty_value': params.penalty_value,
    }
    return Advisory(template.format(**values), details=values)
