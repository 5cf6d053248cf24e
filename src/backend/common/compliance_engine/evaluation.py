"""Pure per-vendor pipeline: canonicalize, coverage checks, rules, scoring."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .canonicalizer import canonicalize, merge_policy_documents
from .config import CoverageProfile, get_coverage_profile
from .context import EvaluationContext
from .coverage_checks import run_coverage_checks
from .models import (
    Alert,
    AlertSource,
    RuleDefinition,
    RuleGroup,
    RuleResult,
    ScoreSnapshot,
    VendorEvaluation,
)
from .runner import RulesRunner
from .scoring import compute_global_score, score_groups, tier_for_score


def active_rules_for(groups: Iterable[RuleGroup], rules: Iterable[RuleDefinition]) -> List[RuleDefinition]:
    """Active rules whose owning group is active, in input order."""
    active_groups = {g.id for g in groups if g.active}
    return [r for r in rules if r.active and r.group_id in active_groups]


def rule_alerts(
    results: Iterable[RuleResult], *, vendor_id: str, tenant_id: str, created_at: datetime
) -> List[Alert]:
    return [
        Alert(
            vendor_id=vendor_id,
            tenant_id=tenant_id,
            code=f"RULE_{res.rule_id}",
            message=res.message,
            severity=res.severity,
            source=AlertSource.RULE,
            rule_id=res.rule_id,
            created_at=created_at,
        )
        for res in results
        if not res.passed
    ]


def evaluate_vendor_documents(
    *,
    vendor_id: str,
    tenant_id: str,
    documents: Optional[Iterable[Any]],
    groups: Sequence[RuleGroup],
    rules: Sequence[RuleDefinition],
    now: datetime,
    profile: CoverageProfile | str | None = None,
    profiles: Optional[Mapping[str, CoverageProfile]] = None,
    runner: Optional[RulesRunner] = None,
    as_of: Optional[date] = None,
) -> VendorEvaluation:
    cfg = profile if isinstance(profile, CoverageProfile) else get_coverage_profile(profile, profiles)
    raw = merge_policy_documents(documents)
    record = canonicalize(raw)

    coverage_alerts = [
        Alert(
            vendor_id=vendor_id,
            tenant_id=tenant_id,
            code=finding.code,
            message=finding.message,
            severity=finding.severity,
            source=AlertSource.COVERAGE,
            created_at=now,
        )
        for finding in run_coverage_checks(record, cfg)
    ]

    active_groups = [g for g in groups if g.active]
    ctx = EvaluationContext(record=record, raw=raw, as_of=as_of or now.date())
    results = (runner or RulesRunner()).evaluate(active_rules_for(active_groups, rules), ctx)

    group_scores = score_groups(active_groups, results)
    global_score = compute_global_score(group_scores)
    tier = tier_for_score(global_score)

    alerts = coverage_alerts + rule_alerts(results, vendor_id=vendor_id, tenant_id=tenant_id, created_at=now)

    return VendorEvaluation(
        vendor_id=vendor_id,
        tenant_id=tenant_id,
        profile=cfg.name,
        record=record,
        rule_results=results,
        group_scores=group_scores,
        coverage_alerts=coverage_alerts,
        alerts=alerts,
        global_score=global_score,
        tier=tier,
        snapshot=ScoreSnapshot(
            vendor_id=vendor_id,
            tenant_id=tenant_id,
            score=global_score,
            tier=tier,
            created_at=now,
        ),
    )
