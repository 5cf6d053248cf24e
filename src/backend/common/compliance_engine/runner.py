from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .context import EvaluationContext
from .models import RuleDefinition, RuleResult, RuleType
from .registry import registry
from .rule import RuleStrategy, default_message


class RulesRunner:
    """Evaluates rule definitions in order, one result per rule.

    Rule types without a registered strategy pass (fail open).
    """

    def __init__(self, strategies: Optional[Dict[RuleType, RuleStrategy]] = None):
        self._strategies = dict(strategies) if strategies is not None else registry.create_all()

    def evaluate(self, rules: Iterable[RuleDefinition], ctx: EvaluationContext) -> List[RuleResult]:
        results = []
        for rule in rules:
            if not rule.active:
                continue
            results.append(self.evaluate_rule(rule, ctx))
        return results

    def evaluate_rule(self, rule: RuleDefinition, ctx: EvaluationContext) -> RuleResult:
        strategy = self._strategies.get(rule.type)
        if strategy is None:
            return _fail_open(rule, ctx)
        return strategy.evaluate(rule, ctx)


def _fail_open(rule: RuleDefinition, ctx: EvaluationContext) -> RuleResult:
    observed = ctx.resolve(rule.field_ref)
    return RuleResult(
        rule_id=rule.id,
        group_id=rule.group_id,
        rule_type=rule.type,
        condition=rule.condition,
        field=rule.field,
        passed=True,
        field_present=observed.present,
        severity=rule.severity,
        actual=observed.value,
        expected=rule.value,
        message=rule.message or default_message(rule),
    )
