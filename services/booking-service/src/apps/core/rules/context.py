# services/booking-service/src/apps/core/rules/context.py
"""
Evaluation inputs.

Everything a rule function reads is gathered up front into these
objects, so rule functions never touch the database.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .catalog import DataSource
from .timeutils import parse_time, ranges_overlap, to_minutes, week_window


WEEKDAY_NAMES = [
    'sunday', 'monday', 'tuesday', 'wednesday',
    'thursday', 'friday', 'saturday',
]


def day_index(value: date) -> int:
    """Day of week with Sunday as 0."""
    return (value.weekday() + 1) % 7


# =============================================================================
# REQUEST
# =============================================================================

@dataclass(frozen=True)
class BookingRequest:
    """A proposed reservation. Times are facility-local."""

    court_id: uuid.UUID
    user_id: uuid.UUID
    facility_id: uuid.UUID
    date: date
    start_time: time
    end_time: time
    duration_minutes: Optional[int] = None
    booking_type: str = ''
    activity_type: str = ''
    notes: str = ''

    def __post_init__(self):
        start = parse_time(self.start_time)
        end = parse_time(self.end_time)
        if end <= start:
            raise ValueError("end_time must be after start_time")

        object.__setattr__(self, 'start_time', start)
        object.__setattr__(self, 'end_time', end)
        if self.duration_minutes is None:
            object.__setattr__(self, 'duration_minutes', to_minutes(end) - to_minutes(start))

    @property
    def activity(self) -> str:
        return self.activity_type or self.booking_type or ''


# =============================================================================
# PRIME TIME
# =============================================================================

class PrimeTimeSchedule:
    """
    Prime-time windows for every court of a facility.

    A court's per-day window wins; otherwise the facility-wide windows for
    that weekday apply.
    """

    def __init__(
        self,
        facility_windows: Dict[str, List[Dict[str, str]]] = None,
        court_windows: Dict[Any, Dict[int, Tuple[time, time]]] = None
    ):
        self.facility_windows = facility_windows or {}
        self.court_windows = court_windows or {}

    @classmethod
    def from_models(cls, facility, courts: Iterable) -> 'PrimeTimeSchedule':
        court_windows = {}
        for court in courts:
            days = {}
            for config in court.operating_configs.all():
                if config.has_prime_time:
                    days[config.day_of_week] = (config.prime_time_start, config.prime_time_end)
            court_windows[court.id] = days
        return cls(facility.prime_time_windows or {}, court_windows)

    def windows_for(self, court_id, on_date: date) -> List[Tuple[time, time]]:
        day = day_index(on_date)
        court_window = self.court_windows.get(court_id, {}).get(day)
        if court_window:
            return [court_window]

        return [
            (parse_time(w['start']), parse_time(w['end']))
            for w in self.facility_windows.get(WEEKDAY_NAMES[day], [])
        ]

    def is_prime(self, court_id, on_date: date, start, end) -> bool:
        return any(
            ranges_overlap(start, end, window_start, window_end)
            for window_start, window_end in self.windows_for(court_id, on_date)
        )

    def is_prime_reservation(self, reservation) -> bool:
        return self.is_prime(
            reservation.court_id,
            reservation.date,
            reservation.start_time,
            reservation.end_time,
        )


# =============================================================================
# CONTEXT
# =============================================================================

CANCELLED = 'cancelled'
ACTIVE_STATUSES = ('pending', 'confirmed')


@dataclass
class BookingEvaluationContext:
    """
    Snapshot of everything the booking-phase rules need.

    ``now`` is aware and in the facility time zone. Sources listed in
    ``unavailable`` could not be read; rules that need them fail closed.
    """

    request: BookingRequest
    now: datetime
    facility: Any
    court: Any
    day_config: Any = None
    schedule: PrimeTimeSchedule = field(default_factory=PrimeTimeSchedule)
    is_admin: bool = False

    tier: Any = None
    household: Any = None
    household_member_ids: List[uuid.UUID] = field(default_factory=list)
    strikes: List[Any] = field(default_factory=list)
    rate_limit_counts: Dict[str, int] = field(default_factory=dict)
    rate_limit_oldest: Dict[str, datetime] = field(default_factory=dict)

    user_reservations: List[Any] = field(default_factory=list)
    household_reservations: List[Any] = field(default_factory=list)
    court_reservations: List[Any] = field(default_factory=list)
    facility_reservations: List[Any] = field(default_factory=list)
    recent_cancellations: List[Any] = field(default_factory=list)
    blackouts: List[Any] = field(default_factory=list)

    unavailable: Set[DataSource] = field(default_factory=set)

    @property
    def today(self) -> date:
        return self.now.date()

    @property
    def tz(self):
        return self.now.tzinfo

    @property
    def is_prime_time(self) -> bool:
        return self.schedule.is_prime(
            self.request.court_id,
            self.request.date,
            self.request.start_time,
            self.request.end_time,
        )

    @property
    def is_weekend_request(self) -> bool:
        return self.request.date.weekday() >= 5

    def week_window(self, window_type: str) -> Tuple[date, date]:
        return week_window(window_type, self.today)

    def tier_limit(self, attribute: str, default: int) -> int:
        """Tier value for ``attribute`` when set, else the rule parameter."""
        if self.tier is not None:
            value = getattr(self.tier, attribute, None)
            if value is not None:
                return value
        return default

    def household_limit(self, attribute: str, default: int) -> int:
        if self.household is not None:
            value = getattr(self.household, attribute, None)
            if value is not None:
                return value
        return default


@dataclass
class CancellationContext:
    """Inputs of the cancellation-phase rules."""

    reservation: Any
    court: Any
    now: datetime
    starts_at: datetime

    @property
    def minutes_before_start(self) -> int:
        return int((self.starts_at - self.now).total_seconds() // 60)


@dataclass
class MembershipContext:
    """Inputs of the membership-phase rules."""

    household: Any
    verified_member_count: int
