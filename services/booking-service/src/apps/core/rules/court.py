# services/booking-service/src/apps/core/rules/court.py
"""
Court rules (CRT-001 to CRT-012).
"""

from datetime import timedelta

from dateutil.rrule import rrulestr

from .account import violation
from .catalog import RuleCode, RULES_BY_CODE, PENALTY_STRIKE, CourtCancelDeadlineParams
from .context import ACTIVE_STATUSES, CANCELLED
from .outcomes import PASS, Advisory, Violation
from .timeutils import (
    combine, format_time, is_aligned_to_slot, parse_time, ranges_overlap, to_minutes,
)


def _day_value(day_config, attribute: str, default):
    """Court day setting when set (non-zero), else ``default``."""
    if day_config is None:
        return default
    return getattr(day_config, attribute, None) or default


def prime_time_schedule(ctx, params):
    """CRT-001: prime requests get an advisory."""
    if ctx.is_prime_time:
        template = RULES_BY_CODE[RuleCode.CRT_001].failure_message_template
        return Advisory(template.format(court_name=ctx.court.name), details={'is_prime_time': True})
    return PASS


def prime_time_max_duration(ctx, params):
    """CRT-002"""
    if not ctx.is_prime_time:
        return PASS

    limit = _day_value(ctx.day_config, 'prime_time_max_duration', params.max_minutes_prime)
    if ctx.request.duration_minutes > limit:
        return violation(RuleCode.CRT_002, court_name=ctx.court.name, max_minutes=limit)
    return PASS


def prime_time_tier_gate(ctx, params):
    """CRT-003"""
    if not ctx.is_prime_time:
        return PASS
    if params.allow_admin_override and ctx.is_admin:
        return PASS

    tier = ctx.tier
    tier_name = tier.tier_name if tier is not None else 'default'

    if tier is not None and not tier.prime_time_eligible:
        return violation(RuleCode.CRT_003, tier_name=tier_name, court_name=ctx.court.name)

    if params.allowed_tiers:
        allowed = {name.lower() for name in params.allowed_tiers}
        if tier_name.lower() not in allowed:
            return violation(RuleCode.CRT_003, tier_name=tier_name, court_name=ctx.court.name)
    return PASS


def operating_hours(ctx, params):
    """CRT-004"""
    request = ctx.request
    court = ctx.court
    closed = Violation(
        f"{court.name} is closed on {request.date.isoformat()}.",
        details={'court_name': court.name, 'date': request.date.isoformat()},
    )

    if court.status != 'available':
        return closed
    if request.date.isoformat() in params.closed_dates:
        return closed

    day_config = ctx.day_config
    if day_config is not None:
        if not day_config.is_open:
            return closed
        open_time, close_time = day_config.open_time, day_config.close_time
    else:
        hours = ctx.facility.hours_for(request.date)
        if hours.get('closed'):
            return closed
        open_time = parse_time(hours.get('open'))
        close_time = parse_time(hours.get('close'))

    if open_time is None or close_time is None:
        return PASS

    if (to_minutes(request.start_time) < to_minutes(open_time)
            or to_minutes(request.end_time) > to_minutes(close_time)):
        return violation(
            RuleCode.CRT_004,
            court_name=court.name,
            open_time=format_time(open_time),
            close_time=format_time(close_time),
        )
    return PASS


def slot_grid(ctx, params):
    """CRT-005"""
    day_config = ctx.day_config
    slot = _day_value(day_config, 'slot_duration', params.slot_minutes)
    minimum = _day_value(day_config, 'min_duration', params.min_duration_minutes)
    maximum = _day_value(day_config, 'max_duration', params.max_duration_minutes)

    duration = ctx.request.duration_minutes
    if (not is_aligned_to_slot(ctx.request.start_time, slot)
            or duration < minimum
            or duration > maximum):
        return violation(
            RuleCode.CRT_005,
            slot_minutes=slot,
            min=minimum,
            max=maximum,
            requested_minutes=duration,
        )
    return PASS


def _blackout_hits(blackout, starts_at, ends_at, tz) -> bool:
    if blackout.start_datetime < ends_at and blackout.end_datetime > starts_at:
        return True
    if not blackout.recurrence_rule:
        return False

    length = blackout.end_datetime - blackout.start_datetime
    rule = rrulestr(blackout.recurrence_rule, dtstart=blackout.start_datetime.astimezone(tz))
    for occurrence in rule.between(starts_at - length, ends_at, inc=True):
        if occurrence < ends_at and occurrence + length > starts_at:
            return True
    return False


def blackouts(ctx, params):
    """CRT-006"""
    request = ctx.request
    starts_at = combine(request.date, request.start_time, ctx.tz)
    ends_at = combine(request.date, request.end_time, ctx.tz)

    for blackout in ctx.blackouts:
        if not blackout.is_active:
            continue
        if blackout.court_id and blackout.court_id != ctx.court.id:
            continue
        if _blackout_hits(blackout, starts_at, ends_at, ctx.tz):
            return violation(
                RuleCode.CRT_006,
                court_name=ctx.court.name,
                reason=blackout.public_reason,
            )
    return PASS


def buffers(ctx, params):
    """CRT-007"""
    before = _day_value(ctx.day_config, 'buffer_before', params.buffer_before_minutes)
    after = _day_value(ctx.day_config, 'buffer_after', params.buffer_after_minutes)
    if not before and not after:
        return PASS

    start = to_minutes(ctx.request.start_time)
    end = to_minutes(ctx.request.end_time)

    for existing in ctx.court_reservations:
        if existing.status not in ACTIVE_STATUSES:
            continue
        existing_start = to_minutes(existing.start_time)
        existing_end = to_minutes(existing.end_time)

        if after and existing_end <= start < existing_end + after:
            return violation(RuleCode.CRT_007, buffer=after)
        if before and existing_start - before < end <= existing_start:
            return violation(RuleCode.CRT_007, buffer=before)
    return PASS


def allowed_activities(ctx, params):
    """CRT-008"""
    allowed = [a.lower() for a in params.allowed_activity_types]
    if not allowed:
        return PASS

    activity = ctx.request.activity
    if params.activity_required and not activity:
        return Violation(
            f"Please select an activity type for {ctx.court.name}.",
            details={'allowed': allowed, 'court_name': ctx.court.name},
        )
    if activity and activity.lower() not in allowed:
        return violation(RuleCode.CRT_008, court_name=ctx.court.name, activity=activity)
    return PASS


def sub_amenity_inventory(ctx, params):
    """CRT-009"""
    amenity = (params.sub_amenity_type or '').lower()
    activity = ctx.request.activity.lower()
    if not amenity or activity != amenity:
        return PASS

    request = ctx.request
    in_use = 0
    for existing in ctx.facility_reservations:
        if existing.status not in ACTIVE_STATUSES or existing.date != request.date:
            continue
        if params.scope == 'court_only' and existing.court_id != request.court_id:
            continue
        used = (existing.activity_type or existing.booking_type or '').lower()
        if used != amenity:
            continue
        if ranges_overlap(request.start_time, request.end_time, existing.start_time, existing.end_time):
            in_use += 1

    if in_use >= params.max_concurrent:
        return violation(
            RuleCode.CRT_009,
            sub_amenity_type=params.sub_amenity_type,
            current=in_use,
            max=params.max_concurrent,
        )
    return PASS


def court_weekly_cap(ctx, params):
    """CRT-010"""
    start, end = ctx.week_window(params.window_type)
    current = sum(
        1 for r in ctx.user_reservations
        if r.court_id == ctx.request.court_id
        and start <= r.date <= end
        and r.status != CANCELLED
    )
    if current >= params.max_per_week_per_account:
        return violation(
            RuleCode.CRT_010,
            court_name=ctx.court.name,
            current=current,
            max=params.max_per_week_per_account,
        )
    return PASS


def release_schedule(ctx, params):
    """CRT-011"""
    release_time = _day_value(ctx.day_config, 'release_time', None) or parse_time(
        params.release_time_local
    )
    release_date = ctx.request.date - timedelta(days=params.days_ahead)
    releases_at = combine(release_date, release_time, ctx.tz)

    if ctx.now < releases_at:
        return violation(
            RuleCode.CRT_011,
            target_date=ctx.request.date.isoformat(),
            court_name=ctx.court.name,
            release_date=release_date.isoformat(),
            release_time=format_time(release_time),
        )
    return PASS


def court_cancellation_deadline(cancel_ctx, params: CourtCancelDeadlineParams):
    """CRT-012: advisory when cancelling inside the court's cutoff."""
    if cancel_ctx.minutes_before_start >= params.cancel_cutoff_minutes:
        return PASS

    template = RULES_BY_CODE[RuleCode.CRT_012].failure_message_template
    values = {
        'court_name': cancel_ctx.court.name,
        'cutoff': params.cancel_cutoff_minutes,
        'penalty_type': params.penalty_type,
        'penalty_value': params.penalty_value if params.penalty_type == PENALTY_STRIKE else 0,
    }
    return Advisory(template.format(**values), details=values)
