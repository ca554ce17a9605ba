# services/booking-service/src/apps/core/rules/registry.py
"""
Rule Registry

Explicit code -> evaluator table. Booking-phase evaluators take a
BookingEvaluationContext, cancellation-phase ones a CancellationContext
and membership-phase ones a MembershipContext.
"""

from typing import Callable, Dict

from . import account, court, household
from .catalog import RuleCode, RULES_BY_CODE, EvaluationPhase


EVALUATORS: Dict[RuleCode, Callable] = {
    RuleCode.ACC_001: account.max_active_reservations,
    RuleCode.ACC_002: account.max_bookings_per_week,
    RuleCode.ACC_003: account.max_minutes_per_week,
    RuleCode.ACC_004: account.no_overlap,
    RuleCode.ACC_005: account.advance_window,
    RuleCode.ACC_006: account.minimum_lead_time,
    RuleCode.ACC_007: account.cancellation_cooldown,
    RuleCode.ACC_008: account.late_cancellation,
    RuleCode.ACC_009: account.strike_lockout,
    RuleCode.ACC_010: account.prime_time_weekly_cap,
    RuleCode.ACC_011: account.rate_limit,
    RuleCode.CRT_001: court.prime_time_schedule,
    RuleCode.CRT_002: court.prime_time_max_duration,
    RuleCode.CRT_003: court.prime_time_tier_gate,
    RuleCode.CRT_004: court.operating_hours,
    RuleCode.CRT_005: court.slot_grid,
    RuleCode.CRT_006: court.blackouts,
    RuleCode.CRT_007: court.buffers,
    RuleCode.CRT_008: court.allowed_activities,
    RuleCode.CRT_009: court.sub_amenity_inventory,
    RuleCode.CRT_010: court.court_weekly_cap,
    RuleCode.CRT_011: court.release_schedule,
    RuleCode.CRT_012: court.court_cancellation_deadline,
    RuleCode.HH_001: household.household_size_cap,
    RuleCode.HH_002: household.household_active_cap,
    RuleCode.HH_003: household.household_prime_cap,
}

_missing = set(RuleCode) - set(EVALUATORS)
if _missing:
    raise RuntimeError(
        f"No evaluator registered for: {', '.join(sorted(c.value for c in _missing))}"
    )


def get_evaluator(code: RuleCode) -> Callable:
    return EVALUATORS[code]


def codes_for_phase(phase: EvaluationPhase):
    """Rule codes of ``phase`` in catalog order."""
    return [code for code, rule in RULES_BY_CODE.items() if rule.evaluation_phase == phase]
