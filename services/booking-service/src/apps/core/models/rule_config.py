# services/booking-service/src/apps/core/models/rule_config.py
"""
Facility Rule Configuration Model

Sparse per-facility overrides layered over the rule catalog defaults.
"""

from django.db import models

from shared.common.mixins import UUIDPrimaryKeyMixin, TimestampMixin, AuditMixin

from apps.core.rules.catalog import RuleCode, Severity
from .facility import Facility


class FacilityRuleConfig(UUIDPrimaryKeyMixin, TimestampMixin, AuditMixin, models.Model):
    """
    One facility's override of one catalog rule.

    ``config`` holds only the parameters the facility changed; everything
    else comes from the catalog default. Deleting the row resets the rule.
    """

    facility = models.ForeignKey(
        Facility,
        on_delete=models.CASCADE,
        related_name='rule_configs'
    )
    rule_code = models.CharField(
        max_length=10,
        choices=[(code.value, code.value) for code in RuleCode]
    )
    is_enabled = models.BooleanField(default=True)
    severity = models.CharField(
        max_length=10,
        choices=[(s.value, s.value) for s in Severity],
        blank=True,
        null=True,
        help_text="Null uses the catalog default severity"
    )
    config = models.JSONField(default=dict, blank=True)
    custom_message = models.TextField(blank=True)

    # Optional scoping
    applies_to_court_ids = models.JSONField(blank=True, null=True)
    applies_to_tier_ids = models.JSONField(blank=True, null=True)

    class Meta:
        db_table = 'facility_rule_configs'
        ordering = ['facility', 'rule_code']
        constraints = [
            models.UniqueConstraint(
                fields=['facility', 'rule_code'],
                name='unique_facility_rule'
            ),
        ]

    def __str__(self):
        state = 'on' if self.is_enabled else 'off'
        return f"{self.rule_code} ({state}) for {self.facility_id}"
