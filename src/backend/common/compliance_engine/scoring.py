"""Severity-weighted group scores, the global score and its tier."""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, List, Sequence

from .context import round_half_up
from .models import GroupScore, RuleGroup, RuleResult, Severity

BASE_PENALTY = Decimal("15")

SEVERITY_WEIGHTS: Dict[Severity, Decimal] = {
    Severity.CRITICAL: Decimal("1.0"),
    Severity.HIGH: Decimal("0.7"),
    Severity.MEDIUM: Decimal("0.4"),
    Severity.LOW: Decimal("0.2"),
}
UNKNOWN_WEIGHT = Decimal("0.3")

# (minimum score, tier), highest first.
TIERS: Sequence[tuple[int, str]] = ((90, "Elite"), (70, "Preferred"), (0, "Watch"))


def severity_weight(severity: Severity | str | None) -> Decimal:
    if severity is None:
        return UNKNOWN_WEIGHT
    return SEVERITY_WEIGHTS.get(Severity(severity), UNKNOWN_WEIGHT)


def compute_group_score(results: Iterable[RuleResult], group_severity: Severity | str | None) -> int:
    results = list(results)
    if not results:
        # No rules in this group: neutral.
        return 100

    group_weight = severity_weight(group_severity or Severity.MEDIUM)
    score = Decimal("100")
    for res in results:
        if res.passed:
            continue
        score -= BASE_PENALTY * severity_weight(res.severity or Severity.MEDIUM) * group_weight

    score = min(Decimal("100"), max(Decimal("0"), score))
    return round_half_up(score)


def score_groups(groups: Iterable[RuleGroup], results: Iterable[RuleResult]) -> List[GroupScore]:
    by_group: Dict[str, List[RuleResult]] = {}
    for res in results:
        by_group.setdefault(res.group_id, []).append(res)

    scores = []
    for group in groups:
        group_results = by_group.get(group.id, [])
        failed = [r.rule_id for r in group_results if not r.passed]
        scores.append(
            GroupScore(
                group_id=group.id,
                label=group.label,
                severity=group.severity,
                passed=not failed,
                score=compute_group_score(group_results, group.severity),
                failed_rule_ids=failed,
            )
        )
    return scores


def compute_global_score(group_scores: Iterable[GroupScore]) -> int:
    values = [g.score for g in group_scores]
    if not values:
        return 100
    return round_half_up(Decimal(sum(values)) / Decimal(len(values)))


def tier_for_score(score: int) -> str:
    for minimum, tier in TIERS:
        if score >= minimum:
            return tier
    return TIERS[-1][1]
