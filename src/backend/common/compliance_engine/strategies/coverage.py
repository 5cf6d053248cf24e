from __future__ import annotations

from ..context import EvaluationContext, FieldValue, is_empty
from ..models import RuleCondition, RuleDefinition, RuleResult, RuleType
from ..registry import register_strategy
from ..rule import RuleStrategy


@register_strategy
class CoverageStrategy(RuleStrategy):
    rule_type = RuleType.COVERAGE
    conditions = frozenset({RuleCondition.EXISTS, RuleCondition.MISSING})

    def check(self, rule: RuleDefinition, observed: FieldValue, ctx: EvaluationContext) -> RuleResult:
        has_value = observed.present and not is_empty(observed.value)
        if rule.condition == RuleCondition.EXISTS:
            passed = has_value
        else:
            passed = not has_value
        return self.result(rule, passed=passed, observed=observed)
