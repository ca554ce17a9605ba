# services/booking-service/src/tests/unit/test_config_resolver.py
"""
Unit Tests for Config Resolver
"""

import pytest
from django.core.cache import cache

from apps.core.events import published_events
from apps.core.models import FacilityRuleConfig
from apps.core.rules import RuleCode, Severity
from apps.core.services import ConfigResolver, RuleConfigurationError, UnknownRuleError
from apps.core.services.config_resolver import CACHE_KEY


@pytest.mark.django_db
class TestConfigResolver:
    """Tests for ConfigResolver."""

    def setup_method(self):
        self.resolver = ConfigResolver()

    def test_defaults_without_overrides(self, facility):
        """Test a facility without rows sees catalog defaults."""
        config = self.resolver.resolve(facility.id, 'ACC-001')

        assert config.is_enabled
        assert config.severity == Severity.BLOCK
        assert config.params.max_active_reservations == 5
        assert not config.is_overridden

    def test_sparse_override(self, facility, configure_rule):
        """Test stored parameters merge over the defaults."""
        configure_rule('ACC-001', config={'max_active_reservations': 2})

        config = self.resolver.resolve(facility.id, RuleCode.ACC_001)
        assert config.params.max_active_reservations == 2
        assert config.params.count_states == ['confirmed', 'pending']
        assert config.is_overridden

    def test_null_severity_uses_default(self, facility, configure_rule):
        """Test a row without severity keeps the catalog severity."""
        configure_rule('CRT-001', is_enabled=False)
        assert self.resolver.resolve(facility.id, 'CRT-001').severity == Severity.WARN

    def test_unknown_rule(self, facility):
        """Test resolving an unknown code."""
        with pytest.raises(UnknownRuleError):
            self.resolver.resolve(facility.id, 'ACC-999')

    def test_resolve_all_in_catalog_order(self, facility):
        """Test every rule is resolved in catalog order."""
        configs = self.resolver.resolve_all(facility.id)

        assert len(configs) == 26
        assert configs[0].code == RuleCode.ACC_001
        assert configs[-1].code == RuleCode.HH_003

    def test_to_dict(self, facility, configure_rule, court):
        """Test the serialized shape of an effective config."""
        configure_rule('CRT-010', is_enabled=True, applies_to_court_ids=[str(court.id)])

        data = self.resolver.resolve(facility.id, 'CRT-010').to_dict()

        assert data['rule_code'] == 'CRT-010'
        assert data['category'] == 'court'
        assert data['evaluation_phase'] == 'booking'
        assert data['config'] == {'max_per_week_per_account': 3, 'window_type': 'calendar_week'}
        assert data['applies_to_court_ids'] == [str(court.id)]
        assert data['is_overridden'] is True

    def test_rows_are_cached(self, facility, configure_rule):
        """Test a raw queryset update is not seen until the cache is invalidated."""
        configure_rule('ACC-006', config={'min_minutes_before_start': 30})
        assert self.resolver.resolve(facility.id, 'ACC-006').params.min_minutes_before_start == 30
        assert cache.get(CACHE_KEY.format(facility_id=facility.id)) is not None

        FacilityRuleConfig.objects.filter(facility=facility, rule_code='ACC-006').update(
            config={'min_minutes_before_start': 90}
        )
        assert self.resolver.resolve(facility.id, 'ACC-006').params.min_minutes_before_start == 30

        ConfigResolver.invalidate(facility.id)
        assert self.resolver.resolve(facility.id, 'ACC-006').params.min_minutes_before_start == 90

    def test_save_invalidates_and_publishes(self, facility, configure_rule, django_capture_on_commit_callbacks):
        """Test saving a row through the ORM refreshes the cache and emits an event on commit."""
        self.resolver.resolve_all(facility.id)
        row = configure_rule('ACC-006', config={'min_minutes_before_start': 30})

        with django_capture_on_commit_callbacks(execute=True):
            row.config = {'min_minutes_before_start': 45}
            row.save()
            assert self.resolver.resolve(facility.id, 'ACC-006').params.min_minutes_before_start == 45
            assert published_events == []

        assert published_events[-1]['event_type'] == 'rule_config.updated'
        assert published_events[-1]['payload']['action'] == 'updated'

    def test_invalid_stored_config(self, facility):
        """Test a corrupt stored row raises a configuration error naming the field."""
        FacilityRuleConfig.objects.create(
            facility=facility,
            rule_code='ACC-009',
            is_enabled=True,
            config={'strike_threshold': 0},
        )

        with pytest.raises(RuleConfigurationError) as exc_info:
            self.resolver.resolve(facility.id, 'ACC-009')
        assert exc_info.value.field == 'strike_threshold'

    def test_scope(self, facility, configure_rule, court, create_tier):
        """Test court and tier scoping."""
        tier = create_tier()
        configure_rule('ACC-002', applies_to_tier_ids=[str(tier.id)])
        config = self.resolver.resolve(facility.id, 'ACC-002')

        assert config.applies_to(court.id, tier.id)
        assert not config.applies_to(court.id, None)
