from common.compliance_engine.models import GroupScore, RuleCondition, RuleResult, RuleType, Severity
from common.compliance_engine.scoring import (
    compute_global_score,
    compute_group_score,
    score_groups,
    severity_weight,
    tier_for_score,
)


def _result(rule_id="r1", *, passed, severity="medium", group_id="g1"):
    return RuleResult(
        rule_id=rule_id,
        group_id=group_id,
        rule_type=RuleType.LIMIT,
        condition=RuleCondition.GTE,
        passed=passed,
        severity=severity,
    )


def test_group_without_results_is_neutral():
    assert compute_group_score([], Severity.CRITICAL) == 100


def test_all_passing_group_scores_full():
    assert compute_group_score([_result(passed=True), _result("r2", passed=True)], "high") == 100


def test_penalty_is_weighted_by_rule_and_group_severity():
    # 100 - 15 * 1.0 * 1.0
    assert compute_group_score([_result(passed=False, severity="critical")], "critical") == 85
    # 100 - 15 * 0.4 * 0.4 = 97.6
    assert compute_group_score([_result(passed=False, severity="medium")], "medium") == 98
    # 100 - 15 * 0.2 * 0.7 = 97.9
    assert compute_group_score([_result(passed=False, severity="low")], "high") == 98


def test_higher_severity_failures_cost_more():
    scores = [
        compute_group_score([_result(passed=False, severity=sev)], "critical")
        for sev in ("low", "medium", "high", "critical")
    ]
    assert scores == sorted(scores, reverse=True)
    assert len(set(scores)) == 4


def test_score_is_clamped_at_zero():
    failures = [_result(f"r{i}", passed=False, severity="critical") for i in range(10)]
    assert compute_group_score(failures, "critical") == 0


def test_unknown_severity_uses_fallback_weight():
    assert severity_weight(Severity.UNKNOWN) == severity_weight("nonsense") == severity_weight(None)
    # 100 - 15 * 0.3 * 1.0 = 95.5 rounds half up
    assert compute_group_score([_result(passed=False, severity="bogus")], "critical") == 96


def test_score_groups_keeps_group_order_and_failed_ids(make_group):
    groups = [make_group("g1", severity="critical"), make_group("g2", severity="low")]
    results = [
        _result("r1", passed=False, severity="high", group_id="g1"),
        _result("r2", passed=True, group_id="g1"),
    ]
    scores = score_groups(groups, results)

    assert [s.group_id for s in scores] == ["g1", "g2"]
    assert scores[0].passed is False
    assert scores[0].failed_rule_ids == ["r1"]
    assert scores[0].score == 90  # 100 - 15 * 0.7 * 1.0 = 89.5
    assert scores[1].passed is True
    assert scores[1].score == 100


def test_global_score_is_rounded_mean():
    assert compute_global_score([]) == 100
    groups = [GroupScore(group_id="a", score=85), GroupScore(group_id="b", score=100)]
    assert compute_global_score(groups) == 93  # 92.5


def test_tiers():
    assert tier_for_score(100) == "Elite"
    assert tier_for_score(90) == "Elite"
    assert tier_for_score(89) == "Preferred"
    assert tier_for_score(70) == "Preferred"
    assert tier_for_score(69) == "Watch"
    assert tier_for_score(0) == "Watch"
