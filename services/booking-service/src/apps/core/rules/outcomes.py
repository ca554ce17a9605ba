# services/booking-service/src/apps/core/rules/outcomes.py
"""
Rule outcomes and the aggregate evaluation result.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from .catalog import RuleCode, Severity


@dataclass(frozen=True)
class Pass:
    pass


@dataclass(frozen=True)
class Violation:
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Advisory:
    """Non-blocking warning."""
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


RuleOutcome = Union[Pass, Violation, Advisory]

PASS = Pass()


@dataclass
class RuleResult:
    """A non-passing rule outcome after severity and message resolution."""
    rule_code: RuleCode
    rule_name: str
    severity: Severity
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_blocking(self) -> bool:
        return self.severity == Severity.BLOCK

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rule_code': self.rule_code.value,
            'rule_name': self.rule_name,
            'severity': self.severity.value,
            'message': self.message,
            'details': self.details,
        }


@dataclass
class EvaluationResult:
    allowed: bool
    violations: List[RuleResult] = field(default_factory=list)
    warnings: List[RuleResult] = field(default_factory=list)
    is_prime_time: bool = False

    @property
    def violation_codes(self) -> List[str]:
        return [v.rule_code.value for v in self.violations]

    @property
    def warning_codes(self) -> List[str]:
        return [w.rule_code.value for w in self.warnings]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'allowed': self.allowed,
            'is_prime_time': self.is_prime_time,
            'violations': [v.to_dict() for v in self.violations],
            'warnings': [w.to_dict() for w in self.warnings],
        }
