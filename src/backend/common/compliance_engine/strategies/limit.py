from __future__ import annotations

from ..context import EvaluationContext, FieldValue, to_number
from ..models import RuleCondition, RuleDefinition, RuleResult, RuleType
from ..registry import register_strategy
from ..rule import RuleStrategy


@register_strategy
class LimitStrategy(RuleStrategy):
    rule_type = RuleType.LIMIT
    conditions = frozenset({RuleCondition.GTE, RuleCondition.LTE})

    def check(self, rule: RuleDefinition, observed: FieldValue, ctx: EvaluationContext) -> RuleResult:
        # Non-numeric on either side compares as zero.
        actual = to_number(observed.value)
        limit = to_number(rule.value)
        if rule.condition == RuleCondition.GTE:
            passed = actual >= limit
        else:
            passed = actual <= limit
        return self.result(rule, passed=passed, observed=observed, actual=str(actual), expected=str(limit))
