from __future__ import annotations

from ..context import EvaluationContext, FieldValue
from ..models import RuleDefinition, RuleResult, RuleType
from ..registry import register_strategy
from ..rule import RuleStrategy


@register_strategy
class CustomStrategy(RuleStrategy):
    """Placeholder type: custom rules never block compliance."""

    rule_type = RuleType.CUSTOM

    def evaluate(self, rule: RuleDefinition, ctx: EvaluationContext) -> RuleResult:
        return self.check(rule, ctx.resolve(rule.field_ref), ctx)

    def check(self, rule: RuleDefinition, observed: FieldValue, ctx: EvaluationContext) -> RuleResult:
        return self.result(rule, passed=True, observed=observed)
