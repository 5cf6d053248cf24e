from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, FrozenSet

from .context import EvaluationContext, FieldValue
from .models import RuleCondition, RuleDefinition, RuleResult, RuleType


class RuleStrategy(ABC):
    """Evaluates every rule definition of one rule type."""

    rule_type: ClassVar[RuleType]
    conditions: ClassVar[FrozenSet[RuleCondition]] = frozenset()

    def __init__(self):
        if not getattr(self, "rule_type", None):
            raise ValueError("Strategy must define rule_type")

    def evaluate(self, rule: RuleDefinition, ctx: EvaluationContext) -> RuleResult:
        observed = ctx.resolve(rule.field_ref)
        if rule.condition not in self.conditions:
            # Conditions a type does not understand pass.
            return self.result(rule, passed=True, observed=observed)
        return self.check(rule, observed, ctx)

    @abstractmethod
    def check(
        self, rule: RuleDefinition, observed: FieldValue, ctx: EvaluationContext
    ) -> RuleResult:  # pragma: no cover
        raise NotImplementedError

    def result(
        self,
        rule: RuleDefinition,
        *,
        passed: bool,
        observed: FieldValue,
        actual: Any = None,
        expected: Any = None,
    ) -> RuleResult:
        return RuleResult(
            rule_id=rule.id,
            group_id=rule.group_id,
            rule_type=rule.type,
            condition=rule.condition,
            field=rule.field,
            passed=passed,
            field_present=observed.present,
            severity=rule.severity,
            actual=observed.value if actual is None else actual,
            expected=rule.value if expected is None else expected,
            message=rule.message or default_message(rule),
        )


def default_message(rule: RuleDefinition) -> str:
    return f"Rule failed on {rule.field} ({rule.condition.value} {rule.value})"
