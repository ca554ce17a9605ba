# services/booking-service/src/apps/core/rules/timeutils.py
"""
Time helpers shared by the rule evaluators.

All values are facility-local wall clock times; callers convert "now"
to the facility time zone before using these.
"""

from datetime import date, datetime, time, timedelta
from typing import Tuple, Union

from dateutil import parser as date_parser


WINDOW_CALENDAR_WEEK = 'calendar_week'
WINDOW_ROLLING_7_DAYS = 'rolling_7_days'
WINDOW_TYPES = (WINDOW_CALENDAR_WEEK, WINDOW_ROLLING_7_DAYS)


def parse_time(value: Union[str, time, None]) -> time:
    """Parse "HH:MM" or "HH:MM:SS" into a ``time``."""
    if value is None or isinstance(value, time):
        return value
    return date_parser.parse(value).time()


def to_minutes(value: Union[str, time]) -> int:
    """Minutes since midnight."""
    value = parse_time(value)
    return value.hour * 60 + value.minute


def format_time(value: time) -> str:
    return value.strftime('%H:%M')


def ranges_overlap(start1, end1, start2, end2, grace_minutes: int = 0) -> bool:
    """
    Half-open overlap of ``[start1, end1)`` and ``[start2, end2)``.

    ``grace_minutes`` shrinks the second range on both ends.
    """
    s1, e1 = to_minutes(start1), to_minutes(end1)
    s2 = to_minutes(start2) + grace_minutes
    e2 = to_minutes(end2) - grace_minutes
    return s1 < e2 and e1 > s2


def is_aligned_to_slot(start, slot_minutes: int) -> bool:
    if slot_minutes <= 0:
        return True
    return to_minutes(start) % slot_minutes == 0


def week_window(window_type: str, today: date) -> Tuple[date, date]:
    """
    Inclusive date range of the current week.

    ``calendar_week`` is Sunday through Saturday containing ``today``;
    ``rolling_7_days`` is the six days before ``today`` plus today.
    """
    if window_type == WINDOW_ROLLING_7_DAYS:
        return today - timedelta(days=6), today

    days_since_sunday = (today.weekday() + 1) % 7
    start = today - timedelta(days=days_since_sunday)
    return start, start + timedelta(days=6)


def is_weekend(value: date) -> bool:
    return value.weekday() >= 5


def minutes_between(earlier: datetime, later: datetime) -> int:
    """Whole minutes from ``earlier`` to ``later`` (negative if reversed)."""
    return int((later - earlier).total_seconds() // 60)


def combine(value: date, at: time, tz) -> datetime:
    return datetime.combine(value, at, tzinfo=tz)
