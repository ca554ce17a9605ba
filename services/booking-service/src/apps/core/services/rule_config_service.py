# services/booking-service/src/apps/core/services/rule_config_service.py
"""
Rule Config Service

Writes facility rule overrides and prime-time windows.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from django.db import transaction

from apps.core.models import Facility, FacilityRuleConfig
from apps.core.models.facility import WEEKDAY_NAMES
from apps.core.rules.catalog import (
    RULE_CATALOG,
    RuleDefinition,
    Severity,
    ParameterError,
    build_params,
    get_definition,
)
from apps.core.rules.timeutils import format_time, parse_time, to_minutes

from .config_resolver import ConfigResolver

logger = logging.getLogger(__name__)


# Sentinel for "leave unchanged"
UNSET = object()


class RuleConfigService:
    """
    Service for facility rule configuration.

    Handles:
    - Per-rule configure and reset
    - Bulk enable, disable and set (atomic per facility)
    - Prime-time windows
    """

    # ==========================================================================
    # Single rule
    # ==========================================================================

    @transaction.atomic
    def configure_rule(
        self,
        facility_id: uuid.UUID,
        rule_code: str,
        is_enabled: Optional[bool] = None,
        severity: Optional[str] = UNSET,
        config: Optional[Dict[str, Any]] = None,
        custom_message: Optional[str] = None,
        applies_to_court_ids=UNSET,
        applies_to_tier_ids=UNSET,
        updated_by: uuid.UUID = None
    ) -> FacilityRuleConfig:
        """
        Create or update a facility's override of one rule.

        ``config`` replaces the stored sparse parameters and is validated
        against the rule's parameter type before anything is written.
        """
        definition = self._definition(rule_code)
        self._ensure_facility(facility_id)

        row = FacilityRuleConfig.objects.select_for_update().filter(
            facility_id=facility_id, rule_code=definition.code.value
        ).first()
        created = row is None
        if created:
            row = FacilityRuleConfig(
                facility_id=facility_id,
                rule_code=definition.code.value,
                is_enabled=definition.default_enabled,
                created_by=updated_by,
            )

        if is_enabled is not None:
            row.is_enabled = self._validate_bool('is_enabled', is_enabled)
        if severity is not UNSET:
            row.severity = self._validate_severity(severity)
        if config is not None:
            row.config = self._validate_config(definition, config)
        if custom_message is not None:
            row.custom_message = custom_message
        if applies_to_court_ids is not UNSET:
            row.applies_to_court_ids = self._validate_scope('applies_to_court_ids', applies_to_court_ids)
        if applies_to_tier_ids is not UNSET:
            row.applies_to_tier_ids = self._validate_scope('applies_to_tier_ids', applies_to_tier_ids)

        row.updated_by = updated_by
        row.save()
        self._invalidate(facility_id)

        logger.info(
            f"{'Created' if created else 'Updated'} rule config {definition.code.value} "
            f"for facility {facility_id}"
        )
        return row

    @transaction.atomic
    def reset_rule(self, facility_id: uuid.UUID, rule_code: str) -> bool:
        """Drop the override so the catalog default applies again."""
        definition = self._definition(rule_code)
        deleted, _ = FacilityRuleConfig.objects.filter(
            facility_id=facility_id, rule_code=definition.code.value
        ).delete()
        self._invalidate(facility_id)

        if deleted:
            logger.info(f"Reset rule {definition.code.value} for facility {facility_id}")
        return bool(deleted)

    # ==========================================================================
    # Bulk
    # ==========================================================================

    @transaction.atomic
    def enable_all(self, facility_id: uuid.UUID, updated_by: uuid.UUID = None) -> int:
        return self._set_all_enabled(facility_id, True, updated_by)

    @transaction.atomic
    def disable_all(self, facility_id: uuid.UUID, updated_by: uuid.UUID = None) -> int:
        return self._set_all_enabled(facility_id, False, updated_by)

    def _set_all_enabled(self, facility_id: uuid.UUID, enabled: bool, updated_by: uuid.UUID) -> int:
        for definition in RULE_CATALOG:
            self.configure_rule(
                facility_id,
                definition.code.value,
                is_enabled=enabled,
                updated_by=updated_by,
            )
        logger.info(
            f"{'Enabled' if enabled else 'Disabled'} all {len(RULE_CATALOG)} rules "
            f"for facility {facility_id}"
        )
        return len(RULE_CATALOG)

    @transaction.atomic
    def bulk_set(
        self,
        facility_id: uuid.UUID,
        entries: List[Dict[str, Any]],
        updated_by: uuid.UUID = None
    ) -> List[FacilityRuleConfig]:
        """
        Apply several rule configs at once.

        Any invalid entry raises and rolls back the whole batch.
        """
        from . import RuleConfigurationError

        rows = []
        for index, entry in enumerate(entries):
            entry = dict(entry)
            code = entry.pop('rule_code', None)
            if not code:
                raise RuleConfigurationError(f"Entry {index} has no rule_code", field='rule_code')

            unknown = set(entry) - {
                'is_enabled', 'severity', 'config', 'custom_message',
                'applies_to_court_ids', 'applies_to_tier_ids',
            }
            if unknown:
                field_name = sorted(unknown)[0]
                raise RuleConfigurationError(f"Unknown field for {code}: {field_name}", field=field_name)

            rows.append(self.configure_rule(
                facility_id,
                code,
                is_enabled=entry.get('is_enabled'),
                severity=entry.get('severity', UNSET),
                config=entry.get('config'),
                custom_message=entry.get('custom_message'),
                applies_to_court_ids=entry.get('applies_to_court_ids', UNSET),
                applies_to_tier_ids=entry.get('applies_to_tier_ids', UNSET),
                updated_by=updated_by,
            ))

        logger.info(f"Applied {len(rows)} rule configs to facility {facility_id}")
        return rows

    # ==========================================================================
    # Prime time
    # ==========================================================================

    @transaction.atomic
    def set_prime_time_windows(
        self,
        facility_id: uuid.UUID,
        windows: Dict[str, List[Dict[str, str]]]
    ) -> Facility:
        """Replace the facility-wide prime-time windows."""
        from . import RuleConfigurationError

        try:
            facility = Facility.objects.select_for_update().get(id=facility_id)
        except Facility.DoesNotExist:
            raise RuleConfigurationError(f"Facility {facility_id} not found", field='facility_id')

        facility.prime_time_windows = self.validate_prime_time_windows(windows)
        facility.save(update_fields=['prime_time_windows', 'updated_at'])

        logger.info(f"Updated prime-time windows for facility {facility_id}")
        return facility

    @staticmethod
    def validate_prime_time_windows(windows) -> Dict[str, List[Dict[str, str]]]:
        """
        Normalize ``{"monday": [{"start": "17:00", "end": "21:00"}]}``.

        Rejects unknown days, unparseable times, empty windows and
        windows that overlap on the same day.
        """
        from . import RuleConfigurationError

        if not isinstance(windows, dict):
            raise RuleConfigurationError("Prime-time windows must be an object", field='prime_time_windows')

        cleaned = {}
        for day, day_windows in windows.items():
            day_name = str(day).lower()
            if day_name not in WEEKDAY_NAMES:
                raise RuleConfigurationError(f"Unknown day: {day}", field='prime_time_windows')
            if not isinstance(day_windows, list):
                raise RuleConfigurationError(
                    f"Windows for {day_name} must be a list", field='prime_time_windows'
                )

            parsed = []
            for window in day_windows:
                try:
                    start = parse_time(window['start'])
                    end = parse_time(window['end'])
                except (KeyError, TypeError, ValueError, OverflowError):
                    raise RuleConfigurationError(
                        f"Invalid window on {day_name}: {window}", field='prime_time_windows'
                    )
                if to_minutes(end) <= to_minutes(start):
                    raise RuleConfigurationError(
                        f"Window on {day_name} must end after it starts", field='prime_time_windows'
                    )
                parsed.append((start, end))

            parsed.sort()
            for (_, previous_end), (start, _) in zip(parsed, parsed[1:]):
                if to_minutes(start) < to_minutes(previous_end):
                    raise RuleConfigurationError(
                        f"Overlapping prime-time windows on {day_name}", field='prime_time_windows'
                    )

            cleaned[day_name] = [
                {'start': format_time(start), 'end': format_time(end)} for start, end in parsed
            ]
        return cleaned

    # ==========================================================================
    # Validation
    # ==========================================================================

    def _definition(self, rule_code) -> RuleDefinition:
        from . import UnknownRuleError

        try:
            return get_definition(rule_code)
        except KeyError:
            raise UnknownRuleError(f"Unknown rule code: {rule_code}")

    def _ensure_facility(self, facility_id: uuid.UUID):
        from . import RuleConfigurationError

        if not Facility.objects.filter(id=facility_id).exists():
            raise RuleConfigurationError(f"Facility {facility_id} not found", field='facility_id')

    def _validate_bool(self, field_name: str, value) -> bool:
        from . import RuleConfigurationError

        if not isinstance(value, bool):
            raise RuleConfigurationError(f"{field_name} must be a boolean", field=field_name)
        return value

    def _validate_severity(self, value) -> Optional[str]:
        from . import RuleConfigurationError

        if value is None:
            return None
        try:
            return Severity(value).value
        except ValueError:
            raise RuleConfigurationError(
                f"Invalid severity: {value}; expected block or warn", field='severity'
            )

    def _validate_config(self, definition: RuleDefinition, config) -> Dict[str, Any]:
        from . import RuleConfigurationError

        if not isinstance(config, dict):
            raise RuleConfigurationError("config must be an object", field='config')
        try:
            build_params(definition.params_type, config)
        except ParameterError as e:
            raise RuleConfigurationError(f"{definition.code.value} {e}", field=e.field)
        return dict(config)

    def _validate_scope(self, field_name: str, value):
        from . import RuleConfigurationError

        if value is None:
            return None
        if not isinstance(value, list):
            raise RuleConfigurationError(f"{field_name} must be a list of ids", field=field_name)
        try:
            return [str(uuid.UUID(str(item))) for item in value]
        except ValueError:
            raise RuleConfigurationError(f"{field_name} must contain UUIDs", field=field_name)

    def _invalidate(self, facility_id: uuid.UUID):
        ConfigResolver.invalidate(facility_id)
        transaction.on_commit(lambda: ConfigResolver.invalidate(facility_id))
