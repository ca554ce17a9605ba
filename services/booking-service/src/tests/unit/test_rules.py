# services/booking-service/src/tests/unit/test_rules.py
"""
Unit Tests for the Rule Catalog and Evaluators

Evaluator functions are pure, so these tests build contexts from unsaved
model instances and never touch the database.
"""

import uuid
from datetime import datetime, date, time, timedelta, timezone as dt_timezone
from types import SimpleNamespace

import pytest

from apps.core.models import (
    Court, CourtBlackout, CourtOperatingConfig, Facility, Household, MembershipTier,
    Reservation, Strike,
)
from apps.core.rules import (
    RuleCode,
    EvaluationPhase,
    ParameterError,
    BookingRequest,
    BookingEvaluationContext,
    PrimeTimeSchedule,
    Pass,
    Violation,
    Advisory,
    RULE_CATALOG,
    build_params,
    get_definition,
    list_definitions,
)
from apps.core.rules import account, court as court_rules, household as household_rules
from apps.core.rules.account import StrikeState, derive_strike_status
from apps.core.rules.catalog import (
    AdvanceWindowParams,
    AllowedActivitiesParams,
    BufferParams,
    CancelCooldownParams,
    CourtCancelDeadlineParams,
    CourtWeeklyParams,
    HouseholdActiveParams,
    HouseholdPrimeParams,
    HouseholdSizeParams,
    LateCancelParams,
    LeadTimeParams,
    MaxActiveReservationsParams,
    NoOverlapParams,
    OperatingHoursParams,
    PrimeDurationParams,
    PrimeScheduleParams,
    PrimeTierParams,
    PrimeWeeklyParams,
    RateLimitParams,
    ReleaseScheduleParams,
    SlotGridParams,
    StrikeLockoutParams,
    SubAmenityParams,
    WeeklyBookingsParams,
    WeeklyMinutesParams,
    BlackoutParams,
)
from apps.core.rules.context import CancellationContext, MembershipContext
from apps.core.rules.registry import EVALUATORS, codes_for_phase
from apps.core.rules.timeutils import week_window


NOW = datetime(2030, 6, 3, 9, 0, tzinfo=dt_timezone.utc)  # Monday
TUESDAY = date(2030, 6, 4)
FACILITY_ID = uuid.uuid4()
COURT_ID = uuid.uuid4()
USER_ID = uuid.uuid4()

PRIME_TUESDAY_EVENINGS = {'tuesday': [{'start': '17:00', 'end': '21:00'}]}


def make_request(**kwargs):
    defaults = {
        'court_id': COURT_ID,
        'user_id': USER_ID,
        'facility_id': FACILITY_ID,
        'date': TUESDAY,
        'start_time': '10:00',
        'end_time': '11:00',
    }
    defaults.update(kwargs)
    return BookingRequest(**defaults)


def make_context(request=None, **kwargs):
    facility = kwargs.pop('facility', None) or Facility(id=FACILITY_ID, name='Riverside', timezone='UTC')
    court = kwargs.pop('court', None) or Court(id=COURT_ID, facility_id=FACILITY_ID, name='Court 1')
    return BookingEvaluationContext(
        request=request or make_request(),
        now=kwargs.pop('now', NOW),
        facility=facility,
        court=court,
        **kwargs
    )


def make_reservation(**kwargs):
    defaults = {
        'facility_id': FACILITY_ID,
        'court_id': COURT_ID,
        'user_id': USER_ID,
        'date': TUESDAY,
        'start_time': time(10, 0),
        'end_time': time(11, 0),
        'duration_minutes': 60,
        'status': 'confirmed',
    }
    defaults.update(kwargs)
    return Reservation(**defaults)


def make_strike(days_ago, **kwargs):
    defaults = {
        'facility_id': FACILITY_ID,
        'user_id': USER_ID,
        'strike_type': Strike.StrikeType.NO_SHOW,
        'issued_at': NOW - timedelta(days=days_ago),
    }
    defaults.update(kwargs)
    return Strike(**defaults)


# =============================================================================
# Catalog and parameters
# =============================================================================

class TestCatalog:
    """Tests for the rule catalog."""

    def test_every_code_has_definition_and_evaluator(self):
        """Test the catalog and the evaluator table cover all 26 codes."""
        assert len(RULE_CATALOG) == 26
        assert {rule.code for rule in RULE_CATALOG} == set(RuleCode)
        assert set(EVALUATORS) == set(RuleCode)

    def test_default_enablement(self):
        """Test which rules are enabled out of the box."""
        enabled = {rule.code.value for rule in RULE_CATALOG if rule.default_enabled}
        assert enabled == {
            'ACC-001', 'ACC-002', 'ACC-004', 'ACC-005', 'ACC-006', 'ACC-008',
            'ACC-009', 'ACC-011', 'CRT-001', 'CRT-002', 'CRT-004', 'CRT-005', 'CRT-006',
        }

    def test_prime_time_schedule_defaults_to_warn(self):
        """Test CRT-001 is advisory by default."""
        assert get_definition('CRT-001').default_severity.value == 'warn'

    def test_get_definition_accepts_lowercase(self):
        """Test codes are looked up case-insensitively."""
        assert get_definition('acc-001').code == RuleCode.ACC_001

    def test_get_definition_unknown_code(self):
        """Test an unknown code raises KeyError."""
        with pytest.raises(KeyError):
            get_definition('XYZ-999')

    def test_list_definitions_by_category(self):
        """Test filtering the catalog by category."""
        household = list_definitions('household')
        assert [rule.code.value for rule in household] == ['HH-001', 'HH-002', 'HH-003']
        assert len(list_definitions()) == 26

    def test_phases(self):
        """Test the cancellation and membership phase codes."""
        assert codes_for_phase(EvaluationPhase.CANCELLATION) == [RuleCode.ACC_008, RuleCode.CRT_012]
        assert codes_for_phase(EvaluationPhase.MEMBERSHIP) == [RuleCode.HH_001]


class TestBuildParams:
    """Tests for sparse parameter merging."""

    def test_defaults_without_overrides(self):
        """Test catalog defaults are used when nothing is overridden."""
        params = build_params(StrikeLockoutParams)
        assert params.strike_threshold == 3
        assert params.strike_window_days == 30
        assert params.lockout_days == 7

    def test_sparse_override_keeps_other_defaults(self):
        """Test an override touches only its own field."""
        params = build_params(MaxActiveReservationsParams, {'max_active_reservations': 2})
        assert params.max_active_reservations == 2
        assert params.count_states == ['confirmed', 'pending']

    def test_falsy_override_wins(self):
        """Test zero and False overrides are not replaced by defaults."""
        assert build_params(LeadTimeParams, {'min_minutes_before_start': 0}).min_minutes_before_start == 0
        assert build_params(PrimeTierParams, {'allow_admin_override': False}).allow_admin_override is False

    def test_unknown_parameter(self):
        """Test unknown keys are rejected and named."""
        with pytest.raises(ParameterError) as exc_info:
            build_params(LeadTimeParams, {'minutes': 30})
        assert exc_info.value.field == 'minutes'

    def test_wrong_types(self):
        """Test booleans are not accepted as integers and vice versa."""
        with pytest.raises(ParameterError):
            build_params(MaxActiveReservationsParams, {'max_active_reservations': True})
        with pytest.raises(ParameterError):
            build_params(NoOverlapParams, {'allow_overlap': 'yes'})

    def test_minimum_enforced(self):
        """Test negative limits and a zero strike threshold are rejected."""
        with pytest.raises(ParameterError):
            build_params(WeeklyBookingsParams, {'max_per_week': -1})
        with pytest.raises(ParameterError) as exc_info:
            build_params(StrikeLockoutParams, {'strike_threshold': 0})
        assert exc_info.value.field == 'strike_threshold'

    def test_choices_enforced(self):
        """Test enumerated values are checked, including list items."""
        with pytest.raises(ParameterError):
            build_params(WeeklyBookingsParams, {'window_type': 'fortnight'})
        with pytest.raises(ParameterError):
            build_params(MaxActiveReservationsParams, {'count_states': ['confirmed', 'bogus']})

    def test_time_and_date_values(self):
        """Test time-of-day and ISO date parameters are validated."""
        assert build_params(AdvanceWindowParams, {'open_time_local': '07:30'}).open_time_local == '07:30'
        with pytest.raises(ParameterError):
            build_params(ReleaseScheduleParams, {'release_time_local': 'not-a-time'})
        with pytest.raises(ParameterError):
            build_params(OperatingHoursParams, {'closed_dates': ['2030-13-01']})

    def test_optional_accepts_none(self):
        """Test optional parameters may be cleared."""
        params = build_params(CancelCooldownParams, {'only_if_within_minutes_of_start': None})
        assert params.only_if_within_minutes_of_start is None


# =============================================================================
# Evaluation inputs
# =============================================================================

class TestBookingRequest:
    """Tests for BookingRequest."""

    def test_parses_times_and_duration(self):
        """Test string times are parsed and duration derived."""
        request = make_request(start_time='09:30', end_time='11:00')
        assert request.start_time == time(9, 30)
        assert request.duration_minutes == 90

    def test_end_must_follow_start(self):
        """Test an empty or inverted range is rejected."""
        with pytest.raises(ValueError):
            make_request(start_time='11:00', end_time='11:00')

    def test_activity_falls_back_to_booking_type(self):
        """Test activity prefers activity_type over booking_type."""
        assert make_request(booking_type='lesson').activity == 'lesson'
        assert make_request(booking_type='lesson', activity_type='ball_machine').activity == 'ball_machine'


class TestPrimeTimeSchedule:
    """Tests for prime-time resolution."""

    def test_facility_window(self):
        """Test facility windows apply to their weekday only."""
        schedule = PrimeTimeSchedule(PRIME_TUESDAY_EVENINGS)
        assert schedule.is_prime(COURT_ID, TUESDAY, time(18, 0), time(19, 0))
        assert not schedule.is_prime(COURT_ID, TUESDAY, time(16, 0), time(17, 0))
        assert not schedule.is_prime(COURT_ID, TUESDAY + timedelta(days=1), time(18, 0), time(19, 0))

    def test_court_window_overrides_facility(self):
        """Test a court's own window replaces the facility's for that day."""
        schedule = PrimeTimeSchedule(
            PRIME_TUESDAY_EVENINGS,
            {COURT_ID: {2: (time(19, 0), time(22, 0))}}
        )
        assert not schedule.is_prime(COURT_ID, TUESDAY, time(17, 0), time(18, 0))
        assert schedule.is_prime(COURT_ID, TUESDAY, time(21, 0), time(22, 0))

    def test_calendar_week_starts_sunday(self):
        """Test the calendar week runs Sunday through Saturday."""
        assert week_window('calendar_week', NOW.date()) == (date(2030, 6, 2), date(2030, 6, 8))
        assert week_window('rolling_7_days', NOW.date()) == (date(2030, 5, 28), date(2030, 6, 3))


# =============================================================================
# Account rules
# =============================================================================

class TestAccountRules:
    """Tests for ACC-001 to ACC-011."""

    def test_max_active_reservations(self):
        """Test ACC-001 counts only upcoming reservations in counted states."""
        params = build_params(MaxActiveReservationsParams, {'max_active_reservations': 3})
        upcoming = [make_reservation(date=TUESDAY + timedelta(days=i)) for i in range(3)]

        outcome = account.max_active_reservations(make_context(user_reservations=upcoming), params)
        assert isinstance(outcome, Violation)
        assert outcome.message == 'You already have 3/3 active reservations. Cancel one to book another.'

        mixed = upcoming[:2] + [
            make_reservation(date=NOW.date() - timedelta(days=1)),
            make_reservation(status=Reservation.Status.CANCELLED),
        ]
        assert isinstance(account.max_active_reservations(make_context(user_reservations=mixed), params), Pass)

    def test_max_active_reservations_tier_limit(self):
        """Test a tier limit replaces the rule parameter."""
        tier = MembershipTier(tier_name='Junior', tier_level=1, max_active_reservations=1)
        ctx = make_context(tier=tier, user_reservations=[make_reservation()])

        outcome = account.max_active_reservations(ctx, build_params(MaxActiveReservationsParams))
        assert isinstance(outcome, Violation)
        assert outcome.details == {'current': 1, 'max': 1}

    def test_max_bookings_per_week(self):
        """Test ACC-002 counts the calendar week and names the next eligible date."""
        params = build_params(WeeklyBookingsParams, {'max_per_week': 2})
        reservations = [
            make_reservation(date=date(2030, 6, 2)),
            make_reservation(date=date(2030, 6, 8)),
            make_reservation(date=date(2030, 6, 9)),
            make_reservation(date=date(2030, 6, 5), status=Reservation.Status.CANCELLED),
        ]

        outcome = account.max_bookings_per_week(make_context(user_reservations=reservations), params)
        assert isinstance(outcome, Violation)
        assert outcome.message == 'Weekly booking limit reached (2/2). Next eligible: 2030-06-09.'

    def test_max_bookings_per_week_counts_cancelled_when_configured(self):
        """Test include_canceled adds cancelled reservations to the count."""
        params = build_params(WeeklyBookingsParams, {'max_per_week': 2, 'include_canceled': True})
        reservations = [
            make_reservation(date=date(2030, 6, 4)),
            make_reservation(date=date(2030, 6, 5), status=Reservation.Status.CANCELLED),
        ]
        assert isinstance(
            account.max_bookings_per_week(make_context(user_reservations=reservations), params),
            Violation
        )

    def test_max_minutes_per_week(self):
        """Test ACC-003 blocks only when the request pushes past the limit."""
        params = build_params(WeeklyMinutesParams, {'max_minutes_per_week': 600})

        at_limit = [make_reservation(duration_minutes=540)]
        assert isinstance(account.max_minutes_per_week(make_context(user_reservations=at_limit), params), Pass)

        over = [make_reservation(duration_minutes=570)]
        outcome = account.max_minutes_per_week(make_context(user_reservations=over), params)
        assert isinstance(outcome, Violation)
        assert outcome.details == {'current_minutes': 570, 'max_minutes': 600}

    def test_no_overlap(self):
        """Test ACC-004 blocks overlap but allows back-to-back slots."""
        params = build_params(NoOverlapParams)

        overlapping = [make_reservation(start_time=time(10, 30), end_time=time(11, 30))]
        outcome = account.no_overlap(make_context(user_reservations=overlapping), params)
        assert isinstance(outcome, Violation)
        assert '10:30-11:30' in outcome.message

        adjacent = [make_reservation(start_time=time(11, 0), end_time=time(12, 0))]
        assert isinstance(account.no_overlap(make_context(user_reservations=adjacent), params), Pass)

    def test_no_overlap_grace_and_allow(self):
        """Test grace minutes shrink the existing slot and allow_overlap disables the check."""
        existing = [make_reservation(start_time=time(10, 45), end_time=time(12, 0))]

        graced = build_params(NoOverlapParams, {'overlap_grace_minutes': 15})
        assert isinstance(account.no_overlap(make_context(user_reservations=existing), graced), Pass)

        allowed = build_params(NoOverlapParams, {'allow_overlap': True})
        assert isinstance(account.no_overlap(make_context(user_reservations=existing), allowed), Pass)

    def test_advance_window(self):
        """Test ACC-005 allows the last day and blocks the day after."""
        params = build_params(AdvanceWindowParams)

        last_day = make_request(date=date(2030, 6, 17))
        assert isinstance(account.advance_window(make_context(last_day), params), Pass)

        too_far = make_request(date=date(2030, 6, 18))
        outcome = account.advance_window(make_context(too_far), params)
        assert isinstance(outcome, Violation)
        assert outcome.details['latest_allowed_date'] == '2030-06-17'

    def test_advance_window_open_time(self):
        """Test the furthest day opens only at the configured local time."""
        params = build_params(AdvanceWindowParams, {'open_time_local': '10:00'})
        last_day = make_request(date=date(2030, 6, 17))

        outcome = account.advance_window(make_context(last_day), params)
        assert isinstance(outcome, Violation)
        assert outcome.details['latest_allowed_date'] == '2030-06-16'

        later = make_context(last_day, now=NOW.replace(hour=10, minute=30))
        assert isinstance(account.advance_window(later, params), Pass)

    def test_advance_window_uses_tier_days(self):
        """Test the tier's advance days replace max_days_ahead."""
        tier = MembershipTier(tier_name='Social', tier_level=1, advance_booking_days=3)
        request = make_request(date=NOW.date() + timedelta(days=4))

        outcome = account.advance_window(make_context(request, tier=tier), build_params(AdvanceWindowParams))
        assert isinstance(outcome, Violation)
        assert outcome.details['max_days_ahead'] == 3

    def test_minimum_lead_time(self):
        """Test ACC-006 is inclusive of the minimum."""
        params = build_params(LeadTimeParams)

        soon = make_request(date=NOW.date(), start_time='09:30', end_time='10:30')
        outcome = account.minimum_lead_time(make_context(soon), params)
        assert isinstance(outcome, Violation)
        assert outcome.message == 'Reservations must be made at least 60 minutes before start time.'

        exact = make_request(date=NOW.date(), start_time='10:00', end_time='11:00')
        assert isinstance(account.minimum_lead_time(make_context(exact), params), Pass)

    def test_cancellation_cooldown(self):
        """Test ACC-007 blocks re-booking a just-cancelled slot."""
        params = build_params(CancelCooldownParams)
        cancellation = SimpleNamespace(
            reservation=make_reservation(status=Reservation.Status.CANCELLED),
            cancelled_at=NOW - timedelta(minutes=10),
            minutes_before_start=60,
        )

        outcome = account.cancellation_cooldown(make_context(recent_cancellations=[cancellation]), params)
        assert isinstance(outcome, Violation)
        assert outcome.details['cooldown_ends_at'] == '09:20'

    def test_cancellation_cooldown_passes(self):
        """Test ACC-007 ignores expired cooldowns, other courts and early cancellations."""
        params = build_params(CancelCooldownParams)
        expired = SimpleNamespace(
            reservation=make_reservation(),
            cancelled_at=NOW - timedelta(minutes=40),
            minutes_before_start=60,
        )
        other_court = SimpleNamespace(
            reservation=make_reservation(court_id=uuid.uuid4()),
            cancelled_at=NOW - timedelta(minutes=5),
            minutes_before_start=60,
        )
        early = SimpleNamespace(
            reservation=make_reservation(),
            cancelled_at=NOW - timedelta(minutes=5),
            minutes_before_start=600,
        )
        ctx = make_context(recent_cancellations=[expired, other_court, early])
        assert isinstance(account.cancellation_cooldown(ctx, params), Pass)

    def test_prime_time_weekly_cap(self):
        """Test ACC-010 counts prime reservations only for prime requests."""
        params = build_params(PrimeWeeklyParams, {'max_prime_per_week': 2})
        schedule = PrimeTimeSchedule(PRIME_TUESDAY_EVENINGS)
        prime = [
            make_reservation(start_time=time(17, 0), end_time=time(18, 0)),
            make_reservation(start_time=time(19, 0), end_time=time(20, 0)),
            make_reservation(start_time=time(8, 0), end_time=time(9, 0)),
        ]

        prime_request = make_request(start_time='18:00', end_time='19:00')
        outcome = account.prime_time_weekly_cap(
            make_context(prime_request, schedule=schedule, user_reservations=prime), params
        )
        assert isinstance(outcome, Violation)
        assert outcome.details == {'current': 2, 'max': 2}

        off_peak = make_context(schedule=schedule, user_reservations=prime)
        assert isinstance(account.prime_time_weekly_cap(off_peak, params), Pass)

    def test_rate_limit(self):
        """Test ACC-011 sums action types and reports the retry delay."""
        params = build_params(RateLimitParams)
        ctx = make_context(
            rate_limit_counts={'create': 7, 'cancel': 3},
            rate_limit_oldest={
                'create': NOW - timedelta(seconds=20),
                'cancel': NOW - timedelta(seconds=50),
            },
        )

        outcome = account.rate_limit(ctx, params)
        assert isinstance(outcome, Violation)
        assert outcome.message == 'Too many actions. Please try again in 10 seconds.'

        under = make_context(rate_limit_counts={'create': 9, 'modify': 5})
        assert isinstance(account.rate_limit(under, params), Pass)


class TestStrikeStatus:
    """Tests for lockout derivation."""

    def setup_method(self):
        self.params = build_params(StrikeLockoutParams)

    def test_clear_and_warned(self):
        """Test zero strikes is clear and some strikes is warned."""
        assert derive_strike_status([], self.params, NOW).state == StrikeState.CLEAR

        status = derive_strike_status([make_strike(1), make_strike(2)], self.params, NOW)
        assert status.state == StrikeState.WARNED
        assert status.active_strikes == 2

    def test_locked_out_until_latest_strike_plus_days(self):
        """Test lockout ends lockout_days after the newest qualifying strike."""
        strikes = [make_strike(1), make_strike(2), make_strike(3)]
        status = derive_strike_status(strikes, self.params, NOW)

        assert status.is_locked_out
        assert status.lockout_ends_at == NOW - timedelta(days=1) + timedelta(days=7)
        assert status.to_dict()['state'] == 'locked_out'

    def test_lockout_elapses(self):
        """Test lockout clears once the lockout period has passed."""
        strikes = [make_strike(8), make_strike(9), make_strike(10)]
        status = derive_strike_status(strikes, self.params, NOW)
        assert status.state == StrikeState.WARNED

    def test_revoked_expired_and_old_strikes_ignored(self):
        """Test only active strikes within the window qualify."""
        strikes = [
            make_strike(1),
            make_strike(2, revoked=True),
            make_strike(3, expires_at=NOW - timedelta(hours=1)),
            make_strike(31),
        ]
        status = derive_strike_status(strikes, self.params, NOW)
        assert status.active_strikes == 1
        assert not status.is_locked_out

    def test_strike_lockout_rule(self):
        """Test ACC-009 blocks while locked out and names the end time."""
        ctx = make_context(strikes=[make_strike(1), make_strike(2), make_strike(3)])
        outcome = account.strike_lockout(ctx, self.params)

        assert isinstance(outcome, Violation)
        assert outcome.details['lockout_ends_at'] == '2030-06-09 09:00'


class TestLateCancellation:
    """Tests for the cancellation-phase rules."""

    def make_cancel_context(self, minutes_before):
        return CancellationContext(
            reservation=make_reservation(),
            court=Court(id=COURT_ID, facility_id=FACILITY_ID, name='Court 1'),
            now=NOW,
            starts_at=NOW + timedelta(minutes=minutes_before),
        )

    def test_late_cancellation_advisory(self):
        """Test ACC-008 warns inside the cutoff with the strike penalty."""
        outcome = account.late_cancellation(self.make_cancel_context(60), build_params(LateCancelParams))

        assert isinstance(outcome, Advisory)
        assert outcome.details == {
            'cutoff': 120,
            'penalty': '1 strike(s)',
            'penalty_type': 'strike',
            'penalty_value': 1,
        }

    def test_late_cancellation_outside_cutoff(self):
        """Test ACC-008 passes at or beyond the cutoff."""
        params = build_params(LateCancelParams)
        assert isinstance(account.late_cancellation(self.make_cancel_context(120), params), Pass)

    def test_warning_penalty(self):
        """Test a warning penalty is described as such."""
        params = build_params(LateCancelParams, {'penalty_type': 'warning'})
        outcome = account.late_cancellation(self.make_cancel_context(30), params)
        assert outcome.details['penalty'] == 'warning'

    def test_court_cancellation_deadline(self):
        """Test CRT-012 reports its own penalty and zero for warnings."""
        params = build_params(CourtCancelDeadlineParams, {'penalty_value': 2})
        outcome = court_rules.court_cancellation_deadline(self.make_cancel_context(30), params)
        assert isinstance(outcome, Advisory)
        assert outcome.details['penalty_value'] == 2

        warning = build_params(CourtCancelDeadlineParams, {'penalty_type': 'warning'})
        outcome = court_rules.court_cancellation_deadline(self.make_cancel_context(30), warning)
        assert outcome.details['penalty_value'] == 0


# =============================================================================
# Court rules
# =============================================================================

class TestCourtRules:
    """Tests for CRT-001 to CRT-011."""

    def prime_context(self, **kwargs):
        request = kwargs.pop('request', None) or make_request(start_time='18:00', end_time='19:00')
        return make_context(request, schedule=PrimeTimeSchedule(PRIME_TUESDAY_EVENINGS), **kwargs)

    def test_prime_time_schedule(self):
        """Test CRT-001 returns an advisory for prime requests only."""
        outcome = court_rules.prime_time_schedule(self.prime_context(), build_params(PrimeScheduleParams))
        assert isinstance(outcome, Advisory)
        assert outcome.message == 'This time is designated as prime time for Court 1.'

        assert isinstance(
            court_rules.prime_time_schedule(make_context(), build_params(PrimeScheduleParams)), Pass
        )

    def test_prime_time_max_duration(self):
        """Test CRT-002 caps prime bookings and honors the court's own cap."""
        long_request = make_request(start_time='18:00', end_time='19:30')
        params = build_params(PrimeDurationParams)

        outcome = court_rules.prime_time_max_duration(self.prime_context(request=long_request), params)
        assert isinstance(outcome, Violation)
        assert outcome.message == 'Prime-time bookings on Court 1 are limited to 60 minutes.'

        day_config = CourtOperatingConfig(day_of_week=2, prime_time_max_duration=120)
        ctx = self.prime_context(request=long_request, day_config=day_config)
        assert isinstance(court_rules.prime_time_max_duration(ctx, params), Pass)

    def test_prime_time_tier_gate(self):
        """Test CRT-003 blocks ineligible tiers and tiers outside the allowed list."""
        ineligible = MembershipTier(tier_name='Social', tier_level=1, prime_time_eligible=False)
        outcome = court_rules.prime_time_tier_gate(
            self.prime_context(tier=ineligible), build_params(PrimeTierParams)
        )
        assert isinstance(outcome, Violation)

        silver = MembershipTier(tier_name='Silver', tier_level=2)
        gold_only = build_params(PrimeTierParams, {'allowed_tiers': ['Gold']})
        assert isinstance(court_rules.prime_time_tier_gate(self.prime_context(tier=silver), gold_only), Violation)

        admin = self.prime_context(tier=ineligible, is_admin=True)
        assert isinstance(court_rules.prime_time_tier_gate(admin, build_params(PrimeTierParams)), Pass)

    def test_operating_hours_from_facility(self):
        """Test CRT-004 uses facility hours when the court has no day config."""
        facility = Facility(
            id=FACILITY_ID, name='Riverside', timezone='UTC',
            operating_hours={'tuesday': {'open': '08:00', 'close': '21:00'}},
        )
        late = make_request(start_time='20:30', end_time='21:30')

        outcome = court_rules.operating_hours(make_context(late, facility=facility), build_params(OperatingHoursParams))
        assert isinstance(outcome, Violation)
        assert outcome.message == 'Court 1 is only available 08:00 - 21:00.'

        inside = make_request(start_time='20:00', end_time='21:00')
        assert isinstance(
            court_rules.operating_hours(make_context(inside, facility=facility), build_params(OperatingHoursParams)),
            Pass
        )

    def test_operating_hours_closed(self):
        """Test CRT-004 blocks closed days, closed dates and courts under maintenance."""
        params = build_params(OperatingHoursParams)

        closed_day = CourtOperatingConfig(day_of_week=2, is_open=False)
        assert 'closed' in court_rules.operating_hours(make_context(day_config=closed_day), params).message

        holiday = build_params(OperatingHoursParams, {'closed_dates': ['2030-06-04']})
        assert isinstance(court_rules.operating_hours(make_context(), holiday), Violation)

        maintenance = Court(id=COURT_ID, facility_id=FACILITY_ID, name='Court 1', status='maintenance')
        assert isinstance(court_rules.operating_hours(make_context(court=maintenance), params), Violation)

    def test_slot_grid(self):
        """Test CRT-005 checks alignment and duration bounds."""
        params = build_params(SlotGridParams)

        outcome = court_rules.slot_grid(make_context(make_request(start_time='10:15', end_time='11:15')), params)
        assert isinstance(outcome, Violation)
        assert outcome.message == (
            'Reservations must start on 30-minute increments and be 30-120 minutes.'
        )

        too_long = make_request(start_time='10:00', end_time='12:30')
        assert isinstance(court_rules.slot_grid(make_context(too_long), params), Violation)
        assert isinstance(court_rules.slot_grid(make_context(), params), Pass)

    def test_slot_grid_day_config(self):
        """Test a court's slot length overrides the parameter."""
        day_config = CourtOperatingConfig(day_of_week=2, slot_duration=60)
        request = make_request(start_time='10:30', end_time='11:30')
        outcome = court_rules.slot_grid(make_context(request, day_config=day_config), build_params(SlotGridParams))
        assert outcome.details['slot_minutes'] == 60

    def test_blackouts(self):
        """Test CRT-006 blocks overlapping blackouts and hides hidden titles."""
        params = build_params(BlackoutParams)
        blackout = CourtBlackout(
            facility_id=FACILITY_ID,
            title='Resurfacing',
            start_datetime=datetime(2030, 6, 4, 10, 30, tzinfo=dt_timezone.utc),
            end_datetime=datetime(2030, 6, 4, 12, 0, tzinfo=dt_timezone.utc),
        )

        outcome = court_rules.blackouts(make_context(blackouts=[blackout]), params)
        assert outcome.message == 'Court 1 is unavailable during this time (Resurfacing).'

        blackout.visibility = CourtBlackout.Visibility.HIDDEN
        outcome = court_rules.blackouts(make_context(blackouts=[blackout]), params)
        assert outcome.details['reason'] == 'scheduled maintenance'

    def test_blackouts_skip_other_courts_and_inactive(self):
        """Test CRT-006 ignores inactive blackouts and other courts."""
        window = {
            'facility_id': FACILITY_ID,
            'title': 'Tournament',
            'start_datetime': datetime(2030, 6, 4, 9, 0, tzinfo=dt_timezone.utc),
            'end_datetime': datetime(2030, 6, 4, 12, 0, tzinfo=dt_timezone.utc),
        }
        other_court = CourtBlackout(court_id=uuid.uuid4(), **window)
        inactive = CourtBlackout(is_active=False, **window)

        ctx = make_context(blackouts=[other_court, inactive])
        assert isinstance(court_rules.blackouts(ctx, build_params(BlackoutParams)), Pass)

    def test_recurring_blackout(self):
        """Test a weekly blackout blocks later occurrences."""
        weekly = CourtBlackout(
            facility_id=FACILITY_ID,
            title='Junior clinic',
            start_datetime=datetime(2030, 5, 28, 10, 0, tzinfo=dt_timezone.utc),
            end_datetime=datetime(2030, 5, 28, 12, 0, tzinfo=dt_timezone.utc),
            recurrence_rule='FREQ=WEEKLY',
        )
        assert isinstance(court_rules.blackouts(make_context(blackouts=[weekly]), build_params(BlackoutParams)), Violation)

        wednesday = make_request(date=date(2030, 6, 5))
        assert isinstance(
            court_rules.blackouts(make_context(wednesday, blackouts=[weekly]), build_params(BlackoutParams)),
            Pass
        )

    def test_buffers(self):
        """Test CRT-007 keeps the turnover buffer after existing reservations."""
        params = build_params(BufferParams)
        earlier = [make_reservation(start_time=time(9, 0), end_time=time(10, 0), user_id=uuid.uuid4())]

        outcome = court_rules.buffers(make_context(court_reservations=earlier), params)
        assert isinstance(outcome, Violation)
        assert outcome.details == {'buffer': 5}

        later = make_request(start_time='10:30', end_time='11:30')
        assert isinstance(court_rules.buffers(make_context(later, court_reservations=earlier), params), Pass)

    def test_allowed_activities(self):
        """Test CRT-008 blocks activities outside the allowed list."""
        params = build_params(AllowedActivitiesParams)
        tournament = make_request(activity_type='tournament')
        assert isinstance(court_rules.allowed_activities(make_context(tournament), params), Violation)
        assert isinstance(court_rules.allowed_activities(make_context(), params), Pass)

        required = build_params(AllowedActivitiesParams, {'activity_required': True})
        outcome = court_rules.allowed_activities(make_context(), required)
        assert outcome.message == 'Please select an activity type for Court 1.'

    def test_sub_amenity_inventory(self):
        """Test CRT-009 counts overlapping uses of the amenity."""
        request = make_request(activity_type='ball_machine')
        in_use = [
            make_reservation(court_id=uuid.uuid4(), activity_type='ball_machine', user_id=uuid.uuid4()),
            make_reservation(
                court_id=uuid.uuid4(), activity_type='ball_machine', user_id=uuid.uuid4(),
                start_time=time(10, 30), end_time=time(11, 30),
            ),
        ]

        outcome = court_rules.sub_amenity_inventory(
            make_context(request, facility_reservations=in_use), build_params(SubAmenityParams)
        )
        assert outcome.message == 'All ball_machine units are reserved for that time.'

        court_only = build_params(SubAmenityParams, {'scope': 'court_only'})
        assert isinstance(
            court_rules.sub_amenity_inventory(make_context(request, facility_reservations=in_use), court_only),
            Pass
        )

    def test_court_weekly_cap(self):
        """Test CRT-010 counts this court's reservations in the week."""
        params = build_params(CourtWeeklyParams)
        reservations = [make_reservation(date=date(2030, 6, d)) for d in (2, 5, 7)]
        reservations.append(make_reservation(date=date(2030, 6, 6), court_id=uuid.uuid4()))

        outcome = court_rules.court_weekly_cap(make_context(user_reservations=reservations), params)
        assert outcome.message == "You've reached the weekly limit for Court 1 (3/3)."

    def test_release_schedule(self):
        """Test CRT-011 blocks until the release moment."""
        params = build_params(ReleaseScheduleParams)

        friday = make_request(date=date(2030, 6, 7))
        outcome = court_rules.release_schedule(make_context(friday), params)
        assert outcome.message == 'Bookings for 2030-06-07 on Court 1 open on 2030-06-04 at 07:00.'

        thursday = make_request(date=date(2030, 6, 6))
        assert isinstance(court_rules.release_schedule(make_context(thursday), params), Pass)

        day_config = CourtOperatingConfig(day_of_week=4, release_time=time(10, 0))
        assert isinstance(
            court_rules.release_schedule(make_context(thursday, day_config=day_config), params),
            Violation
        )


# =============================================================================
# Household rules
# =============================================================================

class TestHouseholdRules:
    """Tests for HH-001 to HH-003."""

    def test_household_size_cap(self):
        """Test HH-001 uses the household cap when set."""
        params = build_params(HouseholdSizeParams)

        full = MembershipContext(household=Household(street_address='1 Elm St'), verified_member_count=6)
        assert household_rules.household_size_cap(full, params).message == (
            'This address has reached the maximum of 6 active members (6/6).'
        )

        capped = MembershipContext(household=Household(street_address='1 Elm St', max_members=2), verified_member_count=2)
        assert isinstance(household_rules.household_size_cap(capped, params), Violation)

        room = MembershipContext(household=Household(street_address='1 Elm St', max_members=2), verified_member_count=1)
        assert isinstance(household_rules.household_size_cap(room, params), Pass)

    def test_household_active_cap(self):
        """Test HH-002 counts upcoming household reservations."""
        params = build_params(HouseholdActiveParams, {'max_active_household': 3})
        reservations = [make_reservation(user_id=uuid.uuid4(), date=TUESDAY + timedelta(days=i)) for i in range(3)]

        ctx = make_context(household=Household(street_address='1 Elm St'), household_reservations=reservations)
        assert household_rules.household_active_cap(ctx, params).details == {'current': 3, 'max': 3}

        assert isinstance(household_rules.household_active_cap(make_context(), params), Pass)

    def test_household_prime_cap(self):
        """Test HH-003 counts household prime reservations this week."""
        params = build_params(HouseholdPrimeParams, {'max_prime_per_week_household': 1})
        prime = [make_reservation(user_id=uuid.uuid4(), start_time=time(20, 0), end_time=time(21, 0))]

        ctx = make_context(
            make_request(start_time='18:00', end_time='19:00'),
            schedule=PrimeTimeSchedule(PRIME_TUESDAY_EVENINGS),
            household=Household(street_address='1 Elm St'),
            household_reservations=prime,
        )
        assert isinstance(household_rules.household_prime_cap(ctx, params), Violation)
