# services/booking-service/src/apps/core/rules/__init__.py
"""
Booking rules: catalog, evaluation inputs, outcomes and the evaluator table.

Nothing in this package touches the database.
"""

from .catalog import (
    RuleCode,
    RuleCategory,
    Severity,
    EvaluationPhase,
    AdminPolicyGroup,
    DataSource,
    RuleDefinition,
    RULE_CATALOG,
    ParameterError,
    build_params,
    get_definition,
    list_definitions,
)
from .context import BookingRequest, BookingEvaluationContext, PrimeTimeSchedule
from .outcomes import Pass, Violation, Advisory, RuleResult, EvaluationResult

__all__ = [
    'RuleCode',
    'RuleCategory',
    'Severity',
    'EvaluationPhase',
    'AdminPolicyGroup',
    'DataSource',
    'RuleDefinition',
    'RULE_CATALOG',
    'ParameterError',
    'build_params',
    'get_definition',
    'list_definitions',
    'BookingRequest',
    'BookingEvaluationContext',
    'PrimeTimeSchedule',
    'Pass',
    'Violation',
    'Advisory',
    'RuleResult',
    'EvaluationResult',
]
