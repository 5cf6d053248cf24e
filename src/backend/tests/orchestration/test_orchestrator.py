import threading

import pytest

from common.compliance_engine.models import AlertSource
from pipelines.data_source import InMemoryDataSource
from pipelines.errors import StoreError, UnknownVendorError
from pipelines.orchestrator import ComplianceOrchestrator


class _FailingDocuments:
    """Document store that raises for selected vendors."""

    def __init__(self, inner, failing):
        self._inner = inner
        self._failing = set(failing)

    def load_policy_documents(self, *, vendor_id, tenant_id):
        if vendor_id in self._failing:
            raise StoreError(f"Failed to load policies for vendor '{vendor_id}'.")
        return self._inner.load_policy_documents(vendor_id=vendor_id, tenant_id=tenant_id)


class _BrokenRuleConfig:
    def load_rule_groups(self, *, tenant_id):
        raise StoreError("Failed to load rule groups for tenant 't1'.")

    def load_rules(self, *, tenant_id):
        raise AssertionError("rules must not be loaded when groups fail")


def test_evaluate_vendor_persists_results_and_snapshot(make_orchestrator, result_store):
    summary = make_orchestrator().evaluate_vendor("v-low")

    assert summary.evaluated is True
    assert summary.tenant_id == "t1"
    assert summary.rules_evaluated == 2
    assert summary.failed_rule_count == 1
    assert summary.auto_alert_count == 1
    assert summary.alert_count == 2

    stored = result_store.get_rule_results("v-low")
    assert {r.rule_id: r.passed for r in stored} == {"r-gl": False, "r-exp": True}
    alerts = result_store.get_alerts("v-low")
    assert [(a.code, a.source) for a in alerts] == [
        ("GL_LIMIT_TOO_LOW", AlertSource.COVERAGE),
        ("RULE_r-gl", AlertSource.RULE),
    ]
    snapshots = result_store.get_snapshots("v-low")
    assert len(snapshots) == 1
    assert snapshots[0].score == summary.global_score
    assert snapshots[0].tier == summary.tier


def test_compliant_vendor_has_no_alerts(make_orchestrator):
    summary = make_orchestrator().evaluate_vendor("v-good")
    assert summary.alert_count == 0
    assert summary.global_score == 100
    assert summary.tier == "Elite"


def test_repeated_runs_replace_results_and_append_history(make_orchestrator, result_store):
    orchestrator = make_orchestrator()
    first = orchestrator.evaluate_vendor("v-low")
    for _ in range(2):
        again = orchestrator.evaluate_vendor("v-low")
        assert again == first

    assert len(result_store.get_rule_results("v-low")) == 2
    assert len(result_store.get_alerts("v-low")) == 2
    assert len(result_store.get_snapshots("v-low")) == 3


def test_unknown_vendor_raises(make_orchestrator):
    with pytest.raises(UnknownVendorError) as excinfo:
        make_orchestrator().evaluate_vendor("nope")
    assert excinfo.value.vendor_id == "nope"


def test_explicit_matching_tenant(make_orchestrator, result_store):
    summary = make_orchestrator().evaluate_vendor("v-other", tenant_id="t2")
    assert summary.evaluated is True
    # t2 has no rule groups: neutral score, coverage checks only.
    assert summary.rules_evaluated == 0
    assert summary.global_score == 100
    assert len(result_store.get_snapshots("v-other")) == 1


def test_vendor_outside_requested_tenant_is_unknown(make_orchestrator, result_store):
    orchestrator = make_orchestrator()
    orchestrator.evaluate_vendor("v-good")
    stored_alerts = result_store.get_alerts("v-good")

    with pytest.raises(UnknownVendorError):
        orchestrator.evaluate_vendor("v-good", tenant_id="t2")

    assert result_store.get_alerts("v-good") == stored_alerts
    assert [s.tenant_id for s in result_store.get_snapshots("v-good")] == ["t1"]


def test_unknown_vendor_with_tenant_is_not_evaluated(make_orchestrator, result_store):
    with pytest.raises(UnknownVendorError):
        make_orchestrator().evaluate_vendor("no-such-vendor", tenant_id="t1")
    assert result_store.get_alerts("no-such-vendor") == []
    assert result_store.get_snapshots("no-such-vendor") == []


def test_explicit_vendor_ids_outside_tenant_are_rejected(make_orchestrator, result_store):
    summary = make_orchestrator().evaluate_tenant("t1", vendor_ids=["v-other", "v-low", "ghost"])

    assert [v.vendor_id for v in summary.per_vendor] == ["v-other", "v-low", "ghost"]
    by_id = {v.vendor_id: v for v in summary.per_vendor}
    assert by_id["v-low"].evaluated is True
    for vendor_id in ("v-other", "ghost"):
        assert by_id[vendor_id].evaluated is False
        assert vendor_id in by_id[vendor_id].error
        assert result_store.get_snapshots(vendor_id) == []
    assert summary.vendors_failed == 2


def test_all_explicit_vendor_ids_rejected(make_orchestrator, result_store):
    summary = make_orchestrator().evaluate_tenant("t2", vendor_ids=["v-good"])
    assert summary.vendors_processed == 1
    assert summary.per_vendor[0].evaluated is False
    assert summary.cancelled is False
    assert result_store.get_snapshots("v-good") == []


def test_rule_config_failure_reported_for_single_vendor(make_orchestrator, result_store):
    summary = make_orchestrator(rule_config=_BrokenRuleConfig()).evaluate_vendor("v-good")
    assert summary.evaluated is False
    assert "rule groups" in summary.error
    assert result_store.get_snapshots("v-good") == []


def test_evaluate_tenant_totals(make_orchestrator):
    summary = make_orchestrator().evaluate_tenant("t1")

    assert summary.vendors_processed == 2
    assert summary.vendors_failed == 0
    assert summary.total_failed_rules == 1
    assert summary.total_auto_alerts == 1
    assert summary.total_alerts == 2
    assert summary.cancelled is False
    assert [v.vendor_id for v in summary.per_vendor] == ["v-good", "v-low"]


def test_evaluate_tenant_isolates_vendor_failures(make_orchestrator, data_source, result_store):
    orchestrator = make_orchestrator(documents=_FailingDocuments(data_source, {"v-good"}))
    summary = orchestrator.evaluate_tenant("t1")

    by_id = {v.vendor_id: v for v in summary.per_vendor}
    assert summary.vendors_processed == 2
    assert summary.vendors_failed == 1
    assert by_id["v-good"].evaluated is False
    assert "v-good" in by_id["v-good"].error
    assert by_id["v-low"].evaluated is True
    assert result_store.get_snapshots("v-good") == []
    assert len(result_store.get_snapshots("v-low")) == 1


def test_evaluate_tenant_with_explicit_vendor_ids(make_orchestrator):
    summary = make_orchestrator().evaluate_tenant("t1", vendor_ids=["v-low", "v-low"])
    assert [v.vendor_id for v in summary.per_vendor] == ["v-low"]
    assert summary.vendors_processed == 1


def test_evaluate_tenant_rule_config_failure_propagates(make_orchestrator):
    with pytest.raises(StoreError):
        make_orchestrator(rule_config=_BrokenRuleConfig()).evaluate_tenant("t1")


def test_evaluate_tenant_without_vendors(make_orchestrator):
    summary = make_orchestrator().evaluate_tenant("empty-tenant")
    assert summary.vendors_processed == 0
    assert summary.per_vendor == []


def test_evaluate_tenant_zero_groups_still_scores(make_orchestrator, result_store):
    source = InMemoryDataSource()
    source.add_vendor("v1", "t9", [{}])
    summary = make_orchestrator(documents=source, rule_config=source, vendors=source).evaluate_tenant("t9")

    vendor = summary.per_vendor[0]
    assert vendor.evaluated is True
    assert vendor.rules_evaluated == 0
    assert vendor.global_score == 100
    assert vendor.auto_alert_count >= 3


def test_cancel_before_start_skips_every_vendor(make_orchestrator, result_store):
    cancel = threading.Event()
    cancel.set()
    summary = make_orchestrator().evaluate_tenant("t1", cancel_event=cancel)

    assert summary.cancelled is True
    assert summary.skipped_vendor_ids == ["v-good", "v-low"]
    assert summary.per_vendor == []
    assert result_store.get_snapshots("v-good") == []


def test_cancel_mid_run_lets_started_vendors_finish(data_source, result_store, fixed_clock):
    cancel = threading.Event()

    class _CancellingDocuments:
        def load_policy_documents(self, *, vendor_id, tenant_id):
            cancel.set()
            return data_source.load_policy_documents(vendor_id=vendor_id, tenant_id=tenant_id)

    orchestrator = ComplianceOrchestrator(
        documents=_CancellingDocuments(),
        rule_config=data_source,
        vendors=data_source,
        results=result_store,
        max_workers=1,
        clock=fixed_clock,
    )
    summary = orchestrator.evaluate_tenant("t1", cancel_event=cancel)

    assert [v.vendor_id for v in summary.per_vendor] == ["v-good"]
    assert summary.per_vendor[0].evaluated is True
    assert summary.skipped_vendor_ids == ["v-low"]
    assert summary.cancelled is True
    assert len(result_store.get_snapshots("v-good")) == 1


def test_max_workers_must_be_positive(data_source, result_store):
    with pytest.raises(ValueError):
        ComplianceOrchestrator(
            documents=data_source,
            rule_config=data_source,
            vendors=data_source,
            results=result_store,
            max_workers=0,
        )


def test_summary_serializes_camel_case(make_orchestrator):
    payload = make_orchestrator().evaluate_tenant("t1").model_dump(mode="json", by_alias=True)
    assert set(payload) == {
        "tenantId",
        "vendorsProcessed",
        "vendorsFailed",
        "totalFailedRules",
        "totalAutoAlerts",
        "totalAlerts",
        "cancelled",
        "skippedVendorIds",
        "perVendor",
    }
    assert payload["perVendor"][0]["failedRuleCount"] == 0
