# services/booking-service/src/apps/core/services/evaluator.py
"""
Rule Evaluator

Walks the catalog, applies enablement, scope and admin gating, runs the
evaluator functions and folds their outcomes into one result.
"""

import logging
from typing import Dict, List, Optional

from apps.core.rules.catalog import (
    RULE_CATALOG,
    AdminPolicyGroup,
    EvaluationPhase,
    RuleCategory,
    RuleCode,
    RuleDefinition,
    Severity,
)
from apps.core.rules.context import BookingEvaluationContext, CancellationContext, MembershipContext
from apps.core.rules.outcomes import Advisory, EvaluationResult, RuleResult, Violation
from apps.core.rules.registry import get_evaluator

from .config_resolver import EffectiveRuleConfig

logger = logging.getLogger(__name__)


ADMIN_TOGGLES = {
    AdminPolicyGroup.GLOBAL: 'restrictions_apply_to_admins',
    AdminPolicyGroup.PEAK_HOURS: 'peak_hours_apply_to_admins',
    AdminPolicyGroup.WEEKEND: 'weekend_policy_apply_to_admins',
}


class _FormatValues(dict):
    """Leaves unknown placeholders as written."""

    def __missing__(self, key):
        return '{' + key + '}'


def render_message(config: EffectiveRuleConfig, message: str, details: dict) -> str:
    if not config.custom_message:
        return message
    try:
        return config.custom_message.format_map(_FormatValues(details))
    except (ValueError, IndexError):
        return config.custom_message


def admin_policy_group(definition: RuleDefinition, is_weekend: bool) -> AdminPolicyGroup:
    """Prime-time rules are peak hours; other rules on Sat/Sun are weekend."""
    if definition.policy_group != AdminPolicyGroup.GLOBAL:
        return definition.policy_group
    if is_weekend:
        return AdminPolicyGroup.WEEKEND
    return AdminPolicyGroup.GLOBAL


class Evaluator:
    """
    Evaluates every enabled rule of a phase.

    There is no short-circuit: every applicable rule runs and every
    non-passing outcome is reported.
    """

    # ==========================================================================
    # Gating
    # ==========================================================================

    def is_admin_exempt(self, definition: RuleDefinition, ctx: BookingEvaluationContext) -> bool:
        if not ctx.is_admin or definition.applies_to_admins:
            return False
        group = admin_policy_group(definition, ctx.is_weekend_request)
        return not getattr(ctx.facility, ADMIN_TOGGLES[group])

    def is_applicable(self, config: EffectiveRuleConfig, ctx: BookingEvaluationContext) -> bool:
        """Whether ``config`` runs for this context."""
        definition = config.definition
        if not config.is_enabled:
            return False

        tier_id = ctx.tier.id if ctx.tier is not None else None
        if not config.applies_to(ctx.request.court_id, tier_id):
            return False

        if definition.category == RuleCategory.HOUSEHOLD and not ctx.facility.uses_address_restrictions:
            return False

        if self.is_admin_exempt(definition, ctx):
            return False
        return True

    # ==========================================================================
    # Booking phase
    # ==========================================================================

    def evaluate(
        self,
        ctx: BookingEvaluationContext,
        configs: Dict[RuleCode, EffectiveRuleConfig]
    ) -> EvaluationResult:
        violations: List[RuleResult] = []
        warnings: List[RuleResult] = []

        for definition in RULE_CATALOG:
            if definition.evaluation_phase != EvaluationPhase.BOOKING:
                continue
            config = configs[definition.code]
            if not self.is_applicable(config, ctx):
                continue

            missing = definition.requires & ctx.unavailable
            if missing:
                sources = sorted(source.value for source in missing)
                violations.append(RuleResult(
                    rule_code=definition.code,
                    rule_name=definition.name,
                    severity=Severity.BLOCK,
                    message=(
                        f"{definition.name} could not be checked right now. "
                        f"Please try again later."
                    ),
                    details={'unavailable': sources},
                ))
                continue

            outcome = get_evaluator(definition.code)(ctx, config.params)
            self._collect(config, outcome, violations, warnings)

        result = EvaluationResult(
            allowed=not violations,
            violations=violations,
            warnings=warnings,
            is_prime_time=ctx.is_prime_time,
        )
        if not result.allowed:
            logger.info(
                f"Request by {ctx.request.user_id} on court {ctx.request.court_id} denied: "
                f"{', '.join(result.violation_codes)}"
            )
        return result

    def _collect(self, config, outcome, violations, warnings):
        if isinstance(outcome, Violation):
            severity = config.severity
        elif isinstance(outcome, Advisory):
            severity = Severity.WARN
        else:
            return

        entry = RuleResult(
            rule_code=config.code,
            rule_name=config.definition.name,
            severity=severity,
            message=render_message(config, outcome.message, outcome.details),
            details=dict(outcome.details),
        )
        if entry.is_blocking:
            violations.append(entry)
        else:
            warnings.append(entry)

    # ==========================================================================
    # Cancellation phase
    # ==========================================================================

    def evaluate_cancellation(
        self,
        ctx: CancellationContext,
        configs: Dict[RuleCode, EffectiveRuleConfig],
        tier_id=None
    ) -> List[RuleResult]:
        """Late-cancellation advisories. Cancelling is never blocked."""
        results = []
        for definition in RULE_CATALOG:
            if definition.evaluation_phase != EvaluationPhase.CANCELLATION:
                continue
            config = configs[definition.code]
            if not config.is_enabled or not config.applies_to(ctx.reservation.court_id, tier_id):
                continue

            outcome = get_evaluator(definition.code)(ctx, config.params)
            if isinstance(outcome, (Violation, Advisory)):
                results.append(RuleResult(
                    rule_code=config.code,
                    rule_name=definition.name,
                    severity=Severity.WARN,
                    message=render_message(config, outcome.message, outcome.details),
                    details=dict(outcome.details),
                ))
        return results

    # ==========================================================================
    # Membership phase
    # ==========================================================================

    def evaluate_membership(
        self,
        ctx: MembershipContext,
        config: EffectiveRuleConfig
    ) -> Optional[RuleResult]:
        """HH-001 check for adding or verifying a member."""
        if not config.is_enabled:
            return None

        outcome = get_evaluator(config.code)(ctx, config.params)
        if not isinstance(outcome, Violation):
            return None
        return RuleResult(
            rule_code=config.code,
            rule_name=config.definition.name,
            severity=config.severity,
            message=render_message(config, outcome.message, outcome.details),
            details=dict(outcome.details),
        )
