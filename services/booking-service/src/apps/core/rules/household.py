# services/booking-service/src/apps/core/rules/household.py
"""
Household rules (HH-001 to HH-003).

Aggregates span the verified members of the requester's household.
"""

from .account import violation
from .catalog import RuleCode
from .context import ACTIVE_STATUSES, CANCELLED
from .outcomes import PASS


def household_size_cap(membership_ctx, params):
    """HH-001: checked when a member is added or verified."""
    household = membership_ctx.household
    limit = params.max_members
    if household.max_members is not None:
        limit = household.max_members

    current = membership_ctx.verified_member_count
    if current >= limit:
        return violation(RuleCode.HH_001, current=current, max=limit)
    return PASS


def household_active_cap(ctx, params):
    """HH-002"""
    if ctx.household is None:
        return PASS

    limit = ctx.household_limit('max_active_reservations', params.max_active_household)
    current = sum(
        1 for r in ctx.household_reservations
        if r.status in ACTIVE_STATUSES and r.date >= ctx.today
    )
    if current >= limit:
        return violation(RuleCode.HH_002, current=current, max=limit)
    return PASS


def household_prime_cap(ctx, params):
    """HH-003"""
    if ctx.household is None or not ctx.is_prime_time:
        return PASS

    limit = ctx.household_limit('prime_time_max_per_week', params.max_prime_per_week_household)
    start, end = ctx.week_window(params.window_type)
    current = sum(
        1 for r in ctx.household_reservations
        if start <= r.date <= end
        and r.status != CANCELLED
        and ctx.schedule.is_prime_reservation(r)
    )
    if current >= limit:
        return violation(RuleCode.HH_003, current=current, max=limit)
    return PASS
