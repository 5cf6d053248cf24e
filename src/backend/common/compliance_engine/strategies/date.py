from __future__ import annotations

from ..context import EvaluationContext, FieldValue, parse_date
from ..models import RuleCondition, RuleDefinition, RuleResult, RuleType
from ..registry import register_strategy
from ..rule import RuleStrategy


@register_strategy
class DateStrategy(RuleStrategy):
    """Strict before/after comparison on calendar dates.

    Expected values may be absolute dates or relative to the evaluation date
    (``today``, ``today+30``, ``today-7``). If either side does not parse the
    rule fails.
    """

    rule_type = RuleType.DATE
    conditions = frozenset({RuleCondition.BEFORE, RuleCondition.AFTER})

    def check(self, rule: RuleDefinition, observed: FieldValue, ctx: EvaluationContext) -> RuleResult:
        actual = parse_date(observed.value) if observed.present else None
        compare = parse_date(rule.value, as_of=ctx.as_of)
        if actual is None or compare is None:
            return self.result(rule, passed=False, observed=observed)

        if rule.condition == RuleCondition.BEFORE:
            passed = actual < compare
        else:
            passed = actual > compare
        return self.result(
            rule,
            passed=passed,
            observed=observed,
            actual=actual.isoformat(),
            expected=compare.isoformat(),
        )
