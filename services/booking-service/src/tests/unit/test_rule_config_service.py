# services/booking-service/src/tests/unit/test_rule_config_service.py
"""
Unit Tests for Rule Config Service
"""

import uuid

import pytest

from apps.core.events import published_events
from apps.core.models import FacilityRuleConfig
from apps.core.services import (
    ConfigResolver,
    RuleConfigService,
    RuleConfigurationError,
    UnknownRuleError,
)


@pytest.mark.django_db
class TestConfigureRule:
    """Tests for configure_rule and reset_rule."""

    def setup_method(self):
        self.service = RuleConfigService()

    def test_creates_row(self, facility, admin_id):
        """Test a first write creates the override row."""
        row = self.service.configure_rule(
            facility.id, 'acc-003', is_enabled=True, config={'max_minutes_per_week': 300},
            updated_by=admin_id,
        )

        assert row.rule_code == 'ACC-003'
        assert row.is_enabled
        assert row.config == {'max_minutes_per_week': 300}
        assert row.created_by == admin_id
        assert row.updated_by == admin_id

    def test_new_row_keeps_default_enablement(self, facility):
        """Test configuring only the message leaves enablement at the catalog default."""
        row = self.service.configure_rule(facility.id, 'ACC-007', custom_message='Slow down')
        assert not row.is_enabled

    def test_updates_existing_row(self, facility):
        """Test later writes only change the fields given."""
        self.service.configure_rule(facility.id, 'ACC-001', config={'max_active_reservations': 2})
        row = self.service.configure_rule(facility.id, 'ACC-001', severity='warn')

        assert FacilityRuleConfig.objects.filter(facility=facility).count() == 1
        assert row.severity == 'warn'
        assert row.config == {'max_active_reservations': 2}

    def test_clear_severity(self, facility):
        """Test severity None returns to the catalog default."""
        self.service.configure_rule(facility.id, 'ACC-001', severity='warn')
        row = self.service.configure_rule(facility.id, 'ACC-001', severity=None)
        assert row.severity is None

    def test_unknown_rule(self, facility):
        """Test configuring an unknown code."""
        with pytest.raises(UnknownRuleError):
            self.service.configure_rule(facility.id, 'XYZ-001', is_enabled=True)

    def test_unknown_facility(self):
        """Test configuring a missing facility."""
        with pytest.raises(RuleConfigurationError) as exc_info:
            self.service.configure_rule(uuid.uuid4(), 'ACC-001', is_enabled=True)
        assert exc_info.value.field == 'facility_id'

    @pytest.mark.parametrize('kwargs,field', [
        ({'is_enabled': 'yes'}, 'is_enabled'),
        ({'severity': 'fatal'}, 'severity'),
        ({'config': ['max_active_reservations']}, 'config'),
        ({'config': {'max_active_reservations': -1}}, 'max_active_reservations'),
        ({'config': {'bogus': 1}}, 'bogus'),
        ({'applies_to_court_ids': 'all'}, 'applies_to_court_ids'),
        ({'applies_to_tier_ids': ['not-a-uuid']}, 'applies_to_tier_ids'),
    ])
    def test_validation(self, facility, kwargs, field):
        """Test invalid values are rejected with the offending field."""
        with pytest.raises(RuleConfigurationError) as exc_info:
            self.service.configure_rule(facility.id, 'ACC-001', **kwargs)

        assert exc_info.value.field == field
        assert not FacilityRuleConfig.objects.filter(facility=facility).exists()

    def test_reset_rule(self, facility):
        """Test reset drops the override."""
        self.service.configure_rule(facility.id, 'ACC-001', is_enabled=False)

        assert self.service.reset_rule(facility.id, 'ACC-001') is True
        assert self.service.reset_rule(facility.id, 'ACC-001') is False
        assert ConfigResolver().resolve(facility.id, 'ACC-001').is_enabled


@pytest.mark.django_db
class TestBulkOperations:
    """Tests for enable_all, disable_all and bulk_set."""

    def setup_method(self):
        self.service = RuleConfigService()

    def test_enable_all(self, facility):
        """Test every rule gets an enabled row."""
        assert self.service.enable_all(facility.id) == 26
        assert all(config.is_enabled for config in ConfigResolver().resolve_all(facility.id))

    def test_disable_all(self, facility):
        """Test every rule gets a disabled row."""
        assert self.service.disable_all(facility.id) == 26
        assert FacilityRuleConfig.objects.filter(facility=facility, is_enabled=False).count() == 26

    def test_bulk_set(self, facility):
        """Test several rules are written together."""
        rows = self.service.bulk_set(facility.id, [
            {'rule_code': 'ACC-003', 'is_enabled': True},
            {'rule_code': 'CRT-007', 'is_enabled': True, 'config': {'buffer_after_minutes': 10}},
        ])

        assert [row.rule_code for row in rows] == ['ACC-003', 'CRT-007']
        assert ConfigResolver().resolve(facility.id, 'CRT-007').params.buffer_after_minutes == 10

    def test_bulk_set_is_atomic(self, facility):
        """Test one bad entry leaves nothing written."""
        with pytest.raises(RuleConfigurationError) as exc_info:
            self.service.bulk_set(facility.id, [
                {'rule_code': 'ACC-003', 'is_enabled': True},
                {'rule_code': 'CRT-007', 'config': {'buffer_after_minutes': -5}},
            ])

        assert exc_info.value.field == 'buffer_after_minutes'
        assert not FacilityRuleConfig.objects.filter(facility=facility).exists()

    def test_bulk_set_rollback_publishes_nothing(self, facility, django_capture_on_commit_callbacks):
        """Test a rolled-back batch leaves no rule config events behind."""
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            with pytest.raises(RuleConfigurationError):
                self.service.bulk_set(facility.id, [
                    {'rule_code': 'ACC-003', 'is_enabled': True},
                    {'rule_code': 'CRT-007', 'config': {'buffer_after_minutes': -5}},
                ])

        assert callbacks == []
        assert published_events == []

    def test_bulk_set_publishes_after_commit(self, facility, django_capture_on_commit_callbacks):
        """Test a successful batch publishes one event per row."""
        with django_capture_on_commit_callbacks(execute=True):
            self.service.bulk_set(facility.id, [
                {'rule_code': 'ACC-003', 'is_enabled': True},
                {'rule_code': 'CRT-007', 'is_enabled': True},
            ])

        assert [e['payload']['rule_code'] for e in published_events] == ['ACC-003', 'CRT-007']

    def test_bulk_set_entry_validation(self, facility):
        """Test entries need a rule code and known keys."""
        with pytest.raises(RuleConfigurationError) as exc_info:
            self.service.bulk_set(facility.id, [{'is_enabled': True}])
        assert exc_info.value.field == 'rule_code'

        with pytest.raises(RuleConfigurationError) as exc_info:
            self.service.bulk_set(facility.id, [{'rule_code': 'ACC-001', 'enabled': True}])
        assert exc_info.value.field == 'enabled'


@pytest.mark.django_db
class TestPrimeTimeWindows:
    """Tests for prime-time window configuration."""

    def setup_method(self):
        self.service = RuleConfigService()

    def test_set_windows(self, facility):
        """Test windows are normalized, sorted and stored."""
        updated = self.service.set_prime_time_windows(facility.id, {
            'Monday': [
                {'start': '19:00', 'end': '21:00'},
                {'start': '6:30', 'end': '8:00'},
            ],
        })

        assert updated.prime_time_windows == {
            'monday': [
                {'start': '06:30', 'end': '08:00'},
                {'start': '19:00', 'end': '21:00'},
            ],
        }

    @pytest.mark.parametrize('windows', [
        {'funday': []},
        {'monday': {'start': '17:00', 'end': '21:00'}},
        {'monday': [{'start': '17:00'}]},
        {'monday': [{'start': 'evening', 'end': '21:00'}]},
        {'monday': [{'start': '21:00', 'end': '17:00'}]},
        {'monday': [{'start': '17:00', 'end': '19:00'}, {'start': '18:00', 'end': '20:00'}]},
        ['monday'],
    ])
    def test_invalid_windows(self, windows):
        """Test malformed and overlapping windows are rejected."""
        with pytest.raises(RuleConfigurationError) as exc_info:
            RuleConfigService.validate_prime_time_windows(windows)
        assert exc_info.value.field == 'prime_time_windows'

    def test_unknown_facility(self):
        """Test setting windows on a missing facility."""
        with pytest.raises(RuleConfigurationError):
            self.service.set_prime_time_windows(uuid.uuid4(), {})
