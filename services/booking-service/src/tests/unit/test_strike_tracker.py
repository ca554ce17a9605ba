# services/booking-service/src/tests/unit/test_strike_tracker.py
"""
Unit Tests for Strike Tracker
"""

import uuid
from datetime import timedelta

import pytest

from apps.core.events import published_events
from apps.core.models import Strike
from apps.core.rules.account import StrikeState
from apps.core.services import StrikeError, StrikeTracker


@pytest.mark.django_db
class TestStrikeStatus:
    """Tests for lockout status."""

    def setup_method(self):
        self.tracker = StrikeTracker()

    def test_clear(self, facility, user_id, now):
        """Test a user without strikes is clear."""
        status = self.tracker.status(user_id, facility.id, now)
        assert status.state == StrikeState.CLEAR
        assert status.active_strikes == 0

    def test_locked_out(self, facility, create_strike, user_id, now):
        """Test three recent strikes lock the user out."""
        for days in (1, 2, 3):
            create_strike(issued_at=now - timedelta(days=days))

        status = self.tracker.status(user_id, facility.id, now)

        assert status.is_locked_out
        assert status.lockout_ends_at == now + timedelta(days=6)

    def test_facility_threshold(self, facility, create_strike, configure_rule, user_id, now):
        """Test the facility's ACC-009 parameters drive the threshold."""
        configure_rule('ACC-009', config={'strike_threshold': 5})
        for days in (1, 2, 3):
            create_strike(issued_at=now - timedelta(days=days))

        status = self.tracker.status(user_id, facility.id, now)
        assert status.state == StrikeState.WARNED
        assert status.threshold == 5

    def test_other_facility_strikes_ignored(self, create_facility, create_strike, user_id, now):
        """Test strikes are counted per facility."""
        other = create_facility(name='Hillside Courts')
        for days in (1, 2, 3):
            create_strike(facility=other, issued_at=now - timedelta(days=days))

        facility = create_facility(name='Lakeside')
        assert self.tracker.status(user_id, facility.id, now).state == StrikeState.CLEAR

    def test_list_strikes(self, facility, create_strike, user_id, other_user_id, now):
        """Test listing filters by user and revocation."""
        create_strike()
        create_strike(revoked=True)
        create_strike(user_id=other_user_id)

        assert self.tracker.list_strikes(facility.id).count() == 3
        assert self.tracker.list_strikes(facility.id, user_id=user_id).count() == 2
        assert self.tracker.list_strikes(facility.id, user_id=user_id, include_revoked=False).count() == 1


@pytest.mark.django_db
class TestIssueStrike:
    """Tests for issuing and revoking strikes."""

    def setup_method(self):
        self.tracker = StrikeTracker()

    def test_issue(self, facility, user_id, admin_id, now):
        """Test a manual strike is recorded and published."""
        strike = self.tracker.issue_strike(
            facility.id, user_id, Strike.StrikeType.MANUAL,
            reason='Abusive behaviour', issued_by=admin_id, now=now,
        )

        assert strike.issued_at == now
        assert strike.strike_reason == 'Abusive behaviour'
        assert [e['event_type'] for e in published_events] == ['strike.issued']

    def test_invalid_type(self, facility, user_id, now):
        """Test an unknown strike type."""
        with pytest.raises(StrikeError):
            self.tracker.issue_strike(facility.id, user_id, 'rudeness', now=now)

    def test_expiry_must_be_future(self, facility, user_id, now):
        """Test an expiry at or before issue time is rejected."""
        with pytest.raises(StrikeError):
            self.tracker.issue_strike(
                facility.id, user_id, Strike.StrikeType.MANUAL, expires_at=now, now=now
            )

    def test_threshold_crossing_publishes_lockout(self, facility, create_strike, user_id, now):
        """Test the strike that reaches the threshold publishes a lockout event."""
        create_strike(issued_at=now - timedelta(days=2))
        create_strike(issued_at=now - timedelta(days=1))

        self.tracker.issue_strike(facility.id, user_id, Strike.StrikeType.NO_SHOW, now=now)

        types = [e['event_type'] for e in published_events]
        assert types == ['strike.issued', 'account.locked_out']
        assert published_events[-1]['payload']['lockout_ends_at'] == (now + timedelta(days=7)).isoformat()

    def test_no_lockout_event_when_already_locked(self, facility, create_strike, user_id, now):
        """Test further strikes while locked out publish no new lockout."""
        for days in (1, 2, 3):
            create_strike(issued_at=now - timedelta(days=days))

        self.tracker.issue_strike(facility.id, user_id, Strike.StrikeType.NO_SHOW, now=now)
        assert [e['event_type'] for e in published_events] == ['strike.issued']

    def test_revoke(self, create_strike, admin_id, now):
        """Test revoking marks the strike and publishes."""
        strike = create_strike()

        revoked = self.tracker.revoke_strike(strike.id, admin_id, 'Court lights failed', now=now)

        assert revoked.revoked
        assert revoked.revoked_by == admin_id
        assert revoked.revoked_at == now
        assert published_events[-1]['event_type'] == 'strike.revoked'

    def test_revoke_twice(self, create_strike, admin_id, now):
        """Test a strike can only be revoked once."""
        strike = create_strike()
        self.tracker.revoke_strike(strike.id, admin_id, 'Mistake', now=now)

        with pytest.raises(StrikeError):
            self.tracker.revoke_strike(strike.id, admin_id, 'Mistake', now=now)

    def test_revoke_unknown(self, admin_id, now):
        """Test revoking an unknown strike."""
        with pytest.raises(StrikeError):
            self.tracker.revoke_strike(uuid.uuid4(), admin_id, 'Mistake', now=now)

    def test_revoke_lifts_lockout(self, facility, create_strike, admin_id, user_id, now):
        """Test revoking a strike below the threshold ends the lockout."""
        strikes = [create_strike(issued_at=now - timedelta(days=days)) for days in (1, 2, 3)]
        assert self.tracker.status(user_id, facility.id, now).is_locked_out

        self.tracker.revoke_strike(strikes[0].id, admin_id, 'Appeal upheld', now=now)
        assert self.tracker.status(user_id, facility.id, now).state == StrikeState.WARNED

    def test_mark_no_show_cancelled_reservation(self, create_reservation, now):
        """Test a cancelled reservation cannot be a no-show."""
        reservation = create_reservation(status='cancelled')

        with pytest.raises(StrikeError):
            self.tracker.mark_no_show(reservation, now=now)
        assert Strike.objects.count() == 0
