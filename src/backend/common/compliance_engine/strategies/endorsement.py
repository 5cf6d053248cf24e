from __future__ import annotations

from ..context import EvaluationContext, FieldValue, normalize_endorsement_code
from ..models import RuleCondition, RuleDefinition, RuleResult, RuleType
from ..registry import register_strategy
from ..rule import RuleStrategy


@register_strategy
class EndorsementStrategy(RuleStrategy):
    """Membership checks against the canonical endorsement codes.

    The rule's field reference is ignored; the canonical set is authoritative.
    """

    rule_type = RuleType.ENDORSEMENT
    conditions = frozenset({RuleCondition.REQUIRES, RuleCondition.MISSING})

    def check(self, rule: RuleDefinition, observed: FieldValue, ctx: EvaluationContext) -> RuleResult:
        target = normalize_endorsement_code(rule.value if rule.value is not None else "")
        found = bool(target) and ctx.record.has_endorsement(target)
        if rule.condition == RuleCondition.REQUIRES:
            passed = found
        else:
            passed = not found
        return self.result(
            rule,
            passed=passed,
            observed=observed,
            actual=list(ctx.record.endorsements),
            expected=target,
        )
