# services/booking-service/src/apps/api/serializers/rule_serializers.py
"""
Rule Serializers

Serializers for the rule catalog, effective configuration and config writes.
"""

from rest_framework import serializers

from apps.core.rules.catalog import Severity


class RuleDefinitionSerializer(serializers.Serializer):
    """Read-only view of a catalog rule definition."""

    def to_representation(self, definition):
        return {
            'rule_code': definition.code.value,
            'rule_name': definition.name,
            'category': definition.category.value,
            'description': definition.description,
            'evaluation_phase': definition.evaluation_phase.value,
            'default_enabled': definition.default_enabled,
            'default_severity': definition.default_severity.value,
            'applies_to_admins': definition.applies_to_admins,
            'policy_group': definition.policy_group.value,
            'default_config': definition.default_config,
            'failure_message_template': definition.failure_message_template,
        }


class EffectiveRuleSerializer(serializers.Serializer):
    """Effective rule config of a facility."""

    def to_representation(self, config):
        return config.to_dict()


class RuleConfigUpdateSerializer(serializers.Serializer):
    """Fields of a PUT on one rule. Omitted fields stay unchanged."""

    is_enabled = serializers.BooleanField(required=False)
    severity = serializers.ChoiceField(
        choices=[s.value for s in Severity],
        required=False,
        allow_null=True
    )
    config = serializers.DictField(required=False)
    custom_message = serializers.CharField(required=False, allow_blank=True)
    applies_to_court_ids = serializers.ListField(
        child=serializers.UUIDField(),
        required=False,
        allow_null=True
    )
    applies_to_tier_ids = serializers.ListField(
        child=serializers.UUIDField(),
        required=False,
        allow_null=True
    )

    def validate(self, attrs):
        for name in ('applies_to_court_ids', 'applies_to_tier_ids'):
            if attrs.get(name) is not None:
                attrs[name] = [str(value) for value in attrs[name]]
        return attrs


class BulkRuleEntrySerializer(RuleConfigUpdateSerializer):
    rule_code = serializers.CharField(max_length=10)


class BulkRuleConfigSerializer(serializers.Serializer):
    rules = BulkRuleEntrySerializer(many=True, allow_empty=False)


class PrimeTimeWindowSerializer(serializers.Serializer):
    start = serializers.CharField()
    end = serializers.CharField()


class PrimeTimeWindowsSerializer(serializers.Serializer):
    """``{"windows": {"monday": [{"start": "17:00", "end": "21:00"}]}}``"""

    windows = serializers.DictField(
        child=PrimeTimeWindowSerializer(many=True)
    )
