# services/booking-service/src/apps/core/services/config_resolver.py
"""
Config Resolver

Merges catalog defaults with a facility's stored overrides into one
effective configuration per rule.
"""

import logging
import uuid
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.core.cache import cache

from apps.core.models import FacilityRuleConfig
from apps.core.rules.catalog import (
    RULE_CATALOG,
    RuleCode,
    RuleDefinition,
    Severity,
    ParameterError,
    build_params,
    get_definition,
)

logger = logging.getLogger(__name__)


CACHE_KEY = 'rule_config:{facility_id}'


@dataclass(frozen=True)
class EffectiveRuleConfig:
    """A rule's configuration as seen by one facility. Never persisted."""

    definition: RuleDefinition
    is_enabled: bool
    severity: Severity
    params: Any
    custom_message: str = ''
    applies_to_court_ids: Optional[List[str]] = None
    applies_to_tier_ids: Optional[List[str]] = None
    is_overridden: bool = False

    @property
    def code(self) -> RuleCode:
        return self.definition.code

    def applies_to(self, court_id, tier_id=None) -> bool:
        """Whether the optional court and tier scopes include the request."""
        if self.applies_to_court_ids:
            if str(court_id) not in {str(c) for c in self.applies_to_court_ids}:
                return False
        if self.applies_to_tier_ids:
            if tier_id is None or str(tier_id) not in {str(t) for t in self.applies_to_tier_ids}:
                return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        definition = self.definition
        return {
            'rule_code': definition.code.value,
            'rule_name': definition.name,
            'category': definition.category.value,
            'evaluation_phase': definition.evaluation_phase.value,
            'is_enabled': self.is_enabled,
            'severity': self.severity.value,
            'config': asdict(self.params),
            'custom_message': self.custom_message,
            'applies_to_court_ids': self.applies_to_court_ids,
            'applies_to_tier_ids': self.applies_to_tier_ids,
            'is_overridden': self.is_overridden,
        }


class ConfigResolver:
    """
    Resolves effective rule configuration for a facility.

    Facility rows are read through the Django cache under
    ``rule_config:{facility_id}``; every config write invalidates the key.
    """

    def __init__(self, cache_timeout: int = None):
        self.cache_timeout = cache_timeout or getattr(settings, 'RULE_CONFIG_CACHE_TIMEOUT', 300)

    # ==========================================================================
    # Resolution
    # ==========================================================================

    def resolve(self, facility_id: uuid.UUID, rule_code) -> EffectiveRuleConfig:
        """Effective config of one rule."""
        from . import UnknownRuleError

        try:
            definition = get_definition(rule_code)
        except KeyError:
            raise UnknownRuleError(f"Unknown rule code: {rule_code}")

        rows = self._load_rows(facility_id)
        return self.merge(definition, rows.get(definition.code.value))

    def resolve_all(self, facility_id: uuid.UUID) -> List[EffectiveRuleConfig]:
        """Every rule in catalog order."""
        rows = self._load_rows(facility_id)
        return [self.merge(d, rows.get(d.code.value)) for d in RULE_CATALOG]

    def resolve_map(self, facility_id: uuid.UUID) -> Dict[RuleCode, EffectiveRuleConfig]:
        return {config.code: config for config in self.resolve_all(facility_id)}

    @staticmethod
    def merge(definition: RuleDefinition, row: Optional[Dict[str, Any]]) -> EffectiveRuleConfig:
        """Layer a stored override row (or nothing) over the catalog default."""
        from . import RuleConfigurationError

        if row is None:
            return EffectiveRuleConfig(
                definition=definition,
                is_enabled=definition.default_enabled,
                severity=definition.default_severity,
                params=definition.default_params(),
            )

        try:
            params = build_params(definition.params_type, row.get('config') or {})
        except ParameterError as e:
            raise RuleConfigurationError(
                f"Stored config for {definition.code.value} is invalid: {e}",
                field=e.field
            )

        severity = Severity(row['severity']) if row.get('severity') else definition.default_severity
        return EffectiveRuleConfig(
            definition=definition,
            is_enabled=row['is_enabled'],
            severity=severity,
            params=params,
            custom_message=row.get('custom_message') or '',
            applies_to_court_ids=row.get('applies_to_court_ids'),
            applies_to_tier_ids=row.get('applies_to_tier_ids'),
            is_overridden=True,
        )

    # ==========================================================================
    # Cache
    # ==========================================================================

    def _load_rows(self, facility_id: uuid.UUID) -> Dict[str, Dict[str, Any]]:
        key = CACHE_KEY.format(facility_id=facility_id)
        rows = cache.get(key)
        if rows is not None:
            return rows

        rows = {
            row['rule_code']: row
            for row in FacilityRuleConfig.objects.filter(facility_id=facility_id).values(
                'rule_code',
                'is_enabled',
                'severity',
                'config',
                'custom_message',
                'applies_to_court_ids',
                'applies_to_tier_ids',
            )
        }
        cache.set(key, rows, self.cache_timeout)
        logger.debug(f"Loaded {len(rows)} rule overrides for facility {facility_id}")
        return rows

    @staticmethod
    def invalidate(facility_id: uuid.UUID):
        cache.delete(CACHE_KEY.format(facility_id=facility_id))
