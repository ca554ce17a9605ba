# services/booking-service/src/apps/core/rules/catalog.py
"""
Rule Catalog

The closed set of booking rules with their compiled-in defaults. Facility
configuration rows only ever override what is declared here.
"""

import typing
from datetime import date
from dataclasses import dataclass, field, fields, asdict
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Type

from .timeutils import WINDOW_CALENDAR_WEEK, WINDOW_TYPES, parse_time


# =============================================================================
# ENUMS
# =============================================================================

class RuleCode(str, Enum):
    ACC_001 = 'ACC-001'
    ACC_002 = 'ACC-002'
    ACC_003 = 'ACC-003'
    ACC_004 = 'ACC-004'
    ACC_005 = 'ACC-005'
    ACC_006 = 'ACC-006'
    ACC_007 = 'ACC-007'
    ACC_008 = 'ACC-008'
    ACC_009 = 'ACC-009'
    ACC_010 = 'ACC-010'
    ACC_011 = 'ACC-011'
    CRT_001 = 'CRT-001'
    CRT_002 = 'CRT-002'
    CRT_003 = 'CRT-003'
    CRT_004 = 'CRT-004'
    CRT_005 = 'CRT-005'
    CRT_006 = 'CRT-006'
    CRT_007 = 'CRT-007'
    CRT_008 = 'CRT-008'
    CRT_009 = 'CRT-009'
    CRT_010 = 'CRT-010'
    CRT_011 = 'CRT-011'
    CRT_012 = 'CRT-012'
    HH_001 = 'HH-001'
    HH_002 = 'HH-002'
    HH_003 = 'HH-003'

    @classmethod
    def parse(cls, value: str) -> 'RuleCode':
        """Look up a code by its value; raises ValueError when unknown."""
        return cls(str(value).upper())


class RuleCategory(str, Enum):
    ACCOUNT = 'account'
    COURT = 'court'
    HOUSEHOLD = 'household'


class Severity(str, Enum):
    BLOCK = 'block'
    WARN = 'warn'


class EvaluationPhase(str, Enum):
    BOOKING = 'booking'
    CANCELLATION = 'cancellation'
    MEMBERSHIP = 'membership'


class AdminPolicyGroup(str, Enum):
    """Facility toggle that decides whether a rule applies to admins."""
    GLOBAL = 'global'
    PEAK_HOURS = 'peak_hours'
    WEEKEND = 'weekend'


class DataSource(str, Enum):
    """Optional collaborators a rule reads from."""
    TIER = 'tier'
    HOUSEHOLD = 'household'
    STRIKES = 'strikes'
    RATE_LIMIT = 'rate_limit'


PENALTY_STRIKE = 'strike'
PENALTY_WARNING = 'warning'


# =============================================================================
# PARAMETER TYPES
# =============================================================================

def _choices(*values):
    return {'choices': values}


NON_NEGATIVE = {'min': 0}
POSITIVE = {'min': 1}


@dataclass(frozen=True)
class MaxActiveReservationsParams:
    max_active_reservations: int = field(default=5, metadata=NON_NEGATIVE)
    count_states: List[str] = field(
        default_factory=lambda: ['confirmed', 'pending'],
        metadata=_choices('pending', 'confirmed', 'cancelled', 'completed')
    )


@dataclass(frozen=True)
class WeeklyBookingsParams:
    max_per_week: int = field(default=10, metadata=NON_NEGATIVE)
    window_type: str = field(default=WINDOW_CALENDAR_WEEK, metadata=_choices(*WINDOW_TYPES))
    include_canceled: bool = False


@dataclass(frozen=True)
class WeeklyMinutesParams:
    max_minutes_per_week: int = field(default=600, metadata=NON_NEGATIVE)
    window_type: str = field(default=WINDOW_CALENDAR_WEEK, metadata=_choices(*WINDOW_TYPES))


@dataclass(frozen=True)
class NoOverlapParams:
    allow_overlap: bool = False
    overlap_grace_minutes: int = field(default=0, metadata=NON_NEGATIVE)


@dataclass(frozen=True)
class AdvanceWindowParams:
    max_days_ahead: int = field(default=14, metadata=NON_NEGATIVE)
    open_time_local: Optional[str] = field(default=None, metadata={'time': True})


@dataclass(frozen=True)
class LeadTimeParams:
    min_minutes_before_start: int = field(default=60, metadata=NON_NEGATIVE)


@dataclass(frozen=True)
class CancelCooldownParams:
    cooldown_minutes: int = field(default=30, metadata=NON_NEGATIVE)
    only_if_within_minutes_of_start: Optional[int] = field(default=240, metadata=NON_NEGATIVE)


@dataclass(frozen=True)
class LateCancelParams:
    late_cancel_cutoff_minutes: int = field(default=120, metadata=NON_NEGATIVE)
    penalty_type: str = field(
        default=PENALTY_STRIKE,
        metadata=_choices(PENALTY_STRIKE, PENALTY_WARNING)
    )
    penalty_value: int = field(default=1, metadata=NON_NEGATIVE)


@dataclass(frozen=True)
class StrikeLockoutParams:
    strike_threshold: int = field(default=3, metadata=POSITIVE)
    strike_window_days: int = field(default=30, metadata=POSITIVE)
    lockout_days: int = field(default=7, metadata=NON_NEGATIVE)


@dataclass(frozen=True)
class PrimeWeeklyParams:
    max_prime_per_week: int = field(default=3, metadata=NON_NEGATIVE)
    window_type: str = field(default=WINDOW_CALENDAR_WEEK, metadata=_choices(*WINDOW_TYPES))


@dataclass(frozen=True)
class RateLimitParams:
    max_actions: int = field(default=10, metadata=POSITIVE)
    window_seconds: int = field(default=60, metadata=POSITIVE)
    action_types: List[str] = field(
        default_factory=lambda: ['create', 'cancel'],
        metadata=_choices('create', 'cancel', 'modify', 'waitlist_join')
    )


@dataclass(frozen=True)
class PrimeScheduleParams:
    pass


@dataclass(frozen=True)
class PrimeDurationParams:
    max_minutes_prime: int = field(default=60, metadata=NON_NEGATIVE)


@dataclass(frozen=True)
class PrimeTierParams:
    allowed_tiers: List[str] = field(default_factory=list)
    allow_admin_override: bool = True


@dataclass(frozen=True)
class OperatingHoursParams:
    closed_dates: List[str] = field(default_factory=list, metadata={'dates': True})


@dataclass(frozen=True)
class SlotGridParams:
    slot_minutes: int = field(default=30, metadata=POSITIVE)
    min_duration_minutes: int = field(default=30, metadata=NON_NEGATIVE)
    max_duration_minutes: int = field(default=120, metadata=NON_NEGATIVE)


@dataclass(frozen=True)
class BlackoutParams:
    pass


@dataclass(frozen=True)
class BufferParams:
    buffer_before_minutes: int = field(default=0, metadata=NON_NEGATIVE)
    buffer_after_minutes: int = field(default=5, metadata=NON_NEGATIVE)


@dataclass(frozen=True)
class AllowedActivitiesParams:
    allowed_activity_types: List[str] = field(
        default_factory=lambda: ['match', 'practice', 'lesson']
    )
    activity_required: bool = False


@dataclass(frozen=True)
class SubAmenityParams:
    sub_amenity_type: str = 'ball_machine'
    max_concurrent: int = field(default=2, metadata=NON_NEGATIVE)
    scope: str = field(default='club_wide', metadata=_choices('court_only', 'club_wide'))


@dataclass(frozen=True)
class CourtWeeklyParams:
    max_per_week_per_account: int = field(default=3, metadata=NON_NEGATIVE)
    window_type: str = field(default=WINDOW_CALENDAR_WEEK, metadata=_choices(*WINDOW_TYPES))


@dataclass(frozen=True)
class ReleaseScheduleParams:
    release_time_local: str = field(default='07:00', metadata={'time': True})
    days_ahead: int = field(default=3, metadata=NON_NEGATIVE)


@dataclass(frozen=True)
class CourtCancelDeadlineParams:
    cancel_cutoff_minutes: int = field(default=120, metadata=NON_NEGATIVE)
    penalty_type: str = field(
        default=PENALTY_STRIKE,
        metadata=_choices(PENALTY_STRIKE, PENALTY_WARNING)
    )
    penalty_value: int = field(default=1, metadata=NON_NEGATIVE)


@dataclass(frozen=True)
class HouseholdSizeParams:
    max_members: int = field(default=6, metadata=NON_NEGATIVE)
    verification_method: str = field(
        default='admin_approval',
        metadata=_choices('invite_code', 'admin_approval', 'document', 'mixed')
    )


@dataclass(frozen=True)
class HouseholdActiveParams:
    max_active_household: int = field(default=4, metadata=NON_NEGATIVE)


@dataclass(frozen=True)
class HouseholdPrimeParams:
    max_prime_per_week_household: int = field(default=3, metadata=NON_NEGATIVE)
    window_type: str = field(default=WINDOW_CALENDAR_WEEK, metadata=_choices(*WINDOW_TYPES))


# =============================================================================
# PARAMETER MERGE / VALIDATION
# =============================================================================

class ParameterError(ValueError):
    """A rule parameter failed validation."""

    def __init__(self, field_name: str, message: str):
        self.field = field_name
        super().__init__(f"{field_name}: {message}")


def _check_value(name: str, expected, value, metadata) -> Any:
    origin = typing.get_origin(expected)
    args = typing.get_args(expected)

    if origin is typing.Union and type(None) in args:
        if value is None:
            return None
        expected = next(a for a in args if a is not type(None))
        origin = typing.get_origin(expected)

    if expected is bool:
        if not isinstance(value, bool):
            raise ParameterError(name, "must be a boolean")
    elif expected is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ParameterError(name, "must be an integer")
        if 'min' in metadata and value < metadata['min']:
            raise ParameterError(name, f"must be at least {metadata['min']}")
    elif expected is str:
        if not isinstance(value, str):
            raise ParameterError(name, "must be a string")
        if metadata.get('time'):
            try:
                parse_time(value)
            except (ValueError, OverflowError):
                raise ParameterError(name, "must be a time of day (HH:MM)")
    elif origin is list:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ParameterError(name, "must be a list of strings")
        if metadata.get('dates'):
            for item in value:
                try:
                    date.fromisoformat(item)
                except ValueError:
                    raise ParameterError(name, f"'{item}' is not an ISO date")
        value = list(value)

    choices = metadata.get('choices')
    if choices:
        items = value if isinstance(value, list) else [value]
        invalid = [v for v in items if v not in choices]
        if invalid:
            raise ParameterError(
                name, f"invalid value {invalid[0]!r}; expected one of {', '.join(choices)}"
            )

    return value


def build_params(params_type: Type, overrides: Optional[Dict[str, Any]] = None):
    """
    Merge sparse ``overrides`` over the typed defaults of ``params_type``.

    A key present in ``overrides`` always wins, including falsy values.
    Raises ParameterError naming the first offending field.
    """
    overrides = overrides or {}
    hints = typing.get_type_hints(params_type)
    declared = {f.name: f for f in fields(params_type)}

    unknown = sorted(set(overrides) - set(declared))
    if unknown:
        raise ParameterError(unknown[0], "unknown parameter")

    values = {}
    for name, declared_field in declared.items():
        if name in overrides:
            values[name] = _check_value(name, hints[name], overrides[name], declared_field.metadata)
    return params_type(**values)


def params_to_dict(params) -> Dict[str, Any]:
    return asdict(params)


# =============================================================================
# DEFINITIONS
# =============================================================================

@dataclass(frozen=True)
class RuleDefinition:
    code: RuleCode
    category: RuleCategory
    name: str
    description: str
    params_type: Type
    default_enabled: bool
    default_severity: Severity = Severity.BLOCK
    applies_to_admins: bool = False
    evaluation_phase: EvaluationPhase = EvaluationPhase.BOOKING
    policy_group: AdminPolicyGroup = AdminPolicyGroup.GLOBAL
    requires: FrozenSet[DataSource] = frozenset()
    failure_message_template: str = ''

    @property
    def default_config(self) -> Dict[str, Any]:
        return params_to_dict(self.params_type())

    def default_params(self):
        return self.params_type()


_TIER = frozenset({DataSource.TIER})
_HOUSEHOLD = frozenset({DataSource.HOUSEHOLD})

RULE_CATALOG: List[RuleDefinition] = [
    # Account rules
    RuleDefinition(
        code=RuleCode.ACC_001,
        category=RuleCategory.ACCOUNT,
        name='Max Active Reservations',
        description='Limits how many upcoming reservations a member can have at once.',
        params_type=MaxActiveReservationsParams,
        default_enabled=True,
        requires=_TIER,
        failure_message_template=(
            'You already have {current}/{max} active reservations. '
            'Cancel one to book another.'
        ),
    ),
    RuleDefinition(
        code=RuleCode.ACC_002,
        category=RuleCategory.ACCOUNT,
        name='Max Reservations Per Week',
        description='Limits how many bookings a member can make in a single week.',
        params_type=WeeklyBookingsParams,
        default_enabled=True,
        requires=_TIER,
        failure_message_template=(
            'Weekly booking limit reached ({current}/{max}). '
            'Next eligible: {next_eligible_date}.'
        ),
    ),
    RuleDefinition(
        code=RuleCode.ACC_003,
        category=RuleCategory.ACCOUNT,
        name='Max Hours Per Week',
        description='Limits total booking minutes per member per week.',
        params_type=WeeklyMinutesParams,
        default_enabled=False,
        requires=_TIER,
        failure_message_template=(
            'Weekly hours limit reached ({current_minutes}/{max_minutes} minutes).'
        ),
    ),
    RuleDefinition(
        code=RuleCode.ACC_004,
        category=RuleCategory.ACCOUNT,
        name='No Overlapping Reservations',
        description='Prevents members from booking overlapping time slots.',
        params_type=NoOverlapParams,
        default_enabled=True,
        applies_to_admins=True,
        failure_message_template=(
            'This booking overlaps another reservation you have ({other_reservation}).'
        ),
    ),
    RuleDefinition(
        code=RuleCode.ACC_005,
        category=RuleCategory.ACCOUNT,
        name='Advance Booking Window',
        description='How far in advance members can book courts.',
        params_type=AdvanceWindowParams,
        default_enabled=True,
        requires=_TIER,
        failure_message_template=(
            'You can book up to {max_days_ahead} days in advance. '
            'Latest bookable date: {latest_allowed_date}.'
        ),
    ),
    RuleDefinition(
        code=RuleCode.ACC_006,
        category=RuleCategory.ACCOUNT,
        name='Minimum Lead Time',
        description='Minimum time before a slot starts that a booking can be made.',
        params_type=LeadTimeParams,
        default_enabled=True,
        failure_message_template=(
            'Reservations must be made at least {min_minutes} minutes before start time.'
        ),
    ),
    RuleDefinition(
        code=RuleCode.ACC_007,
        category=RuleCategory.ACCOUNT,
        name='Cancellation Cooldown',
        description='Prevents immediate re-booking of a slot after cancelling it.',
        params_type=CancelCooldownParams,
        default_enabled=False,
        failure_message_template=(
            'You recently cancelled this slot. You can book it again after {cooldown_ends_at}.'
        ),
    ),
    RuleDefinition(
        code=RuleCode.ACC_008,
        category=RuleCategory.ACCOUNT,
        name='Late Cancellation Policy',
        description='Issues a strike when cancellations happen too close to start time.',
        params_type=LateCancelParams,
        default_enabled=True,
        evaluation_phase=EvaluationPhase.CANCELLATION,
        failure_message_template=(
            'This cancellation is within {cutoff} minutes of start. Penalty: {penalty}.'
        ),
    ),
    RuleDefinition(
        code=RuleCode.ACC_009,
        category=RuleCategory.ACCOUNT,
        name='No-Show / Strike System',
        description=(
            'Tracks no-shows and late cancellations. Members are temporarily '
            'locked out after reaching the strike threshold.'
        ),
        params_type=StrikeLockoutParams,
        default_enabled=True,
        requires=frozenset({DataSource.STRIKES}),
        failure_message_template=(
            'Your account is locked due to no-show/late-cancel penalties until {lockout_ends_at}.'
        ),
    ),
    RuleDefinition(
        code=RuleCode.ACC_010,
        category=RuleCategory.ACCOUNT,
        name='Prime-Time Per Week Limit',
        description='Limits prime-time bookings per member per week.',
        params_type=PrimeWeeklyParams,
        default_enabled=False,
        policy_group=AdminPolicyGroup.PEAK_HOURS,
        requires=_TIER,
        failure_message_template='Prime-time weekly limit reached ({current}/{max}).',
    ),
    RuleDefinition(
        code=RuleCode.ACC_011,
        category=RuleCategory.ACCOUNT,
        name='Rate Limit Actions',
        description='Prevents rapid-fire booking and cancellation actions.',
        params_type=RateLimitParams,
        default_enabled=True,
        requires=frozenset({DataSource.RATE_LIMIT}),
        failure_message_template=(
            'Too many actions. Please try again in {retry_after_seconds} seconds.'
        ),
    ),

    # Court rules
    RuleDefinition(
        code=RuleCode.CRT_001,
        category=RuleCategory.COURT,
        name='Prime-Time Schedule',
        description='Marks requests that fall inside a prime-time window.',
        params_type=PrimeScheduleParams,
        default_enabled=True,
        default_severity=Severity.WARN,
        policy_group=AdminPolicyGroup.PEAK_HOURS,
        failure_message_template='This time is designated as prime time for {court_name}.',
    ),
    RuleDefinition(
        code=RuleCode.CRT_002,
        category=RuleCategory.COURT,
        name='Prime-Time Max Duration',
        description='Maximum booking duration during prime-time hours.',
        params_type=PrimeDurationParams,
        default_enabled=True,
        policy_group=AdminPolicyGroup.PEAK_HOURS,
        failure_message_template=(
            'Prime-time bookings on {court_name} are limited to {max_minutes} minutes.'
        ),
    ),
    RuleDefinition(
        code=RuleCode.CRT_003,
        category=RuleCategory.COURT,
        name='Prime-Time Eligibility by Tier',
        description='Restricts prime-time booking to specific membership tiers.',
        params_type=PrimeTierParams,
        default_enabled=False,
        policy_group=AdminPolicyGroup.PEAK_HOURS,
        requires=_TIER,
        failure_message_template=(
            'Your membership tier ({tier_name}) is not eligible to book prime time on {court_name}.'
        ),
    ),
    RuleDefinition(
        code=RuleCode.CRT_004,
        category=RuleCategory.COURT,
        name='Court Operating Hours',
        description='Rejects requests outside court or facility operating hours.',
        params_type=OperatingHoursParams,
        default_enabled=True,
        applies_to_admins=True,
        failure_message_template='{court_name} is only available {open_time} - {close_time}.',
    ),
    RuleDefinition(
        code=RuleCode.CRT_005,
        category=RuleCategory.COURT,
        name='Reservation Slot Grid',
        description='Controls time slot alignment and booking duration limits.',
        params_type=SlotGridParams,
        default_enabled=True,
        applies_to_admins=True,
        failure_message_template=(
            'Reservations must start on {slot_minutes}-minute increments '
            'and be {min}-{max} minutes.'
        ),
    ),
    RuleDefinition(
        code=RuleCode.CRT_006,
        category=RuleCategory.COURT,
        name='Blackout Blocks',
        description='Blocks courts for maintenance, events and holidays.',
        params_type=BlackoutParams,
        default_enabled=True,
        applies_to_admins=True,
        failure_message_template='{court_name} is unavailable during this time ({reason}).',
    ),
    RuleDefinition(
        code=RuleCode.CRT_007,
        category=RuleCategory.COURT,
        name='Buffer Time Between Reservations',
        description='Keeps a turnover buffer between consecutive reservations.',
        params_type=BufferParams,
        default_enabled=False,
        applies_to_admins=True,
        failure_message_template=(
            'This time is unavailable due to a {buffer} minute buffer between reservations.'
        ),
    ),
    RuleDefinition(
        code=RuleCode.CRT_008,
        category=RuleCategory.COURT,
        name='Allowed Activities / Booking Types',
        description='Restricts which activities may be booked on a court.',
        params_type=AllowedActivitiesParams,
        default_enabled=False,
        applies_to_admins=True,
        failure_message_template='Selected activity type is not allowed on {court_name}.',
    ),
    RuleDefinition(
        code=RuleCode.CRT_009,
        category=RuleCategory.COURT,
        name='Sub-Amenity Inventory Limit',
        description='Limits concurrent use of a shared sub-amenity such as ball machines.',
        params_type=SubAmenityParams,
        default_enabled=False,
        applies_to_admins=True,
        failure_message_template='All {sub_amenity_type} units are reserved for that time.',
    ),
    RuleDefinition(
        code=RuleCode.CRT_010,
        category=RuleCategory.COURT,
        name='Court-Specific Weekly Cap',
        description='Limits how many times a member can book the same court per week.',
        params_type=CourtWeeklyParams,
        default_enabled=False,
        failure_message_template=(
            "You've reached the weekly limit for {court_name} ({current}/{max})."
        ),
    ),
    RuleDefinition(
        code=RuleCode.CRT_011,
        category=RuleCategory.COURT,
        name='Court Release Time',
        description='Courts become bookable at a set time a number of days in advance.',
        params_type=ReleaseScheduleParams,
        default_enabled=False,
        failure_message_template=(
            'Bookings for {target_date} on {court_name} open on {release_date} at {release_time}.'
        ),
    ),
    RuleDefinition(
        code=RuleCode.CRT_012,
        category=RuleCategory.COURT,
        name='Court-Specific Cancellation Deadline',
        description='Court-level cancellation notice with its own penalty.',
        params_type=CourtCancelDeadlineParams,
        default_enabled=False,
        evaluation_phase=EvaluationPhase.CANCELLATION,
        failure_message_template=(
            'This reservation is inside the cancellation window for {court_name}.'
        ),
    ),

    # Household rules
    RuleDefinition(
        code=RuleCode.HH_001,
        category=RuleCategory.HOUSEHOLD,
        name='Max Members Per Address',
        description='Limits how many accounts can be registered at a single address.',
        params_type=HouseholdSizeParams,
        default_enabled=False,
        evaluation_phase=EvaluationPhase.MEMBERSHIP,
        requires=_HOUSEHOLD,
        failure_message_template=(
            'This address has reached the maximum of {max} active members ({current}/{max}).'
        ),
    ),
    RuleDefinition(
        code=RuleCode.HH_002,
        category=RuleCategory.HOUSEHOLD,
        name='Household Max Active Reservations',
        description='Limits total active reservations across all accounts at an address.',
        params_type=HouseholdActiveParams,
        default_enabled=False,
        requires=_HOUSEHOLD,
        failure_message_template=(
            'Your household has reached its active reservation limit ({current}/{max}).'
        ),
    ),
    RuleDefinition(
        code=RuleCode.HH_003,
        category=RuleCategory.HOUSEHOLD,
        name='Household Prime-Time Cap',
        description='Limits prime-time bookings per week for all accounts at an address.',
        params_type=HouseholdPrimeParams,
        default_enabled=False,
        policy_group=AdminPolicyGroup.PEAK_HOURS,
        requires=_HOUSEHOLD,
        failure_message_template=(
            'Your household has reached its prime-time weekly limit ({current}/{max}).'
        ),
    ),
]

RULES_BY_CODE: Dict[RuleCode, RuleDefinition] = {rule.code: rule for rule in RULE_CATALOG}

assert set(RULES_BY_CODE) == set(RuleCode), "Every RuleCode needs a catalog entry"


def get_definition(code) -> RuleDefinition:
    """Definition for ``code`` (enum or string); KeyError if unknown."""
    if not isinstance(code, RuleCode):
        try:
            code = RuleCode.parse(code)
        except ValueError:
            raise KeyError(code)
    return RULES_BY_CODE[code]


def list_definitions(category: str = None) -> List[RuleDefinition]:
    if category is None:
        return list(RULE_CATALOG)
    return [rule for rule in RULE_CATALOG if rule.category.value == category]
