from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Sequence

from common.compliance_engine.config import DEFAULT_PROFILE, CoverageProfile
from common.compliance_engine.evaluation import active_rules_for, evaluate_vendor_documents
from common.compliance_engine.models import (
    RuleDefinition,
    RuleGroup,
    TenantRunSummary,
    VendorEvaluation,
    VendorRunSummary,
)
from common.compliance_engine.runner import RulesRunner

from .config import DEFAULT_MAX_WORKERS
from .data_source import DocumentStore, RuleConfigStore, VendorDirectory
from .errors import StoreError, UnknownVendorError
from .result_store import ResultStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RuleConfigSnapshot:
    """Rule groups and rules loaded once per run; read-only for its duration."""

    groups: tuple[RuleGroup, ...] = ()
    rules: tuple[RuleDefinition, ...] = ()


class ComplianceOrchestrator:
    """Runs the per-vendor pipeline for one vendor or every vendor of a tenant.

    Store clients are injected; the orchestrator never builds its own. Each
    vendor's pipeline is isolated: a failure becomes an error entry in the
    summary and the batch carries on.
    """

    def __init__(
        self,
        *,
        documents: DocumentStore,
        rule_config: RuleConfigStore,
        vendors: VendorDirectory,
        results: ResultStore,
        profile: CoverageProfile | str = DEFAULT_PROFILE,
        profiles: Optional[Mapping[str, CoverageProfile]] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        clock: Optional[Clock] = None,
        runner: Optional[RulesRunner] = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1.")
        self._documents = documents
        self._rule_config = rule_config
        self._vendors = vendors
        self._results = results
        self._profile = profile
        self._profiles = profiles
        self._max_workers = max_workers
        self._clock = clock or utc_now
        self._runner = runner or RulesRunner()

    def load_rule_config(self, tenant_id: str) -> RuleConfigSnapshot:
        groups = tuple(g for g in self._rule_config.load_rule_groups(tenant_id=tenant_id) if g.active)
        rules: tuple[RuleDefinition, ...] = ()
        if groups:
            rules = tuple(active_rules_for(groups, self._rule_config.load_rules(tenant_id=tenant_id)))
        if not groups:
            logger.info("No active rule groups for tenant %s; scoring is neutral.", tenant_id)
        elif not rules:
            logger.info("No active rules for tenant %s; scoring is neutral.", tenant_id)
        return RuleConfigSnapshot(groups=groups, rules=rules)

    def run_vendor_pipeline(
        self, *, tenant_id: str, vendor_id: str, config: RuleConfigSnapshot
    ) -> VendorEvaluation:
        """Evaluate one vendor and persist the outcome. Raises on store failures."""
        documents = self._documents.load_policy_documents(vendor_id=vendor_id, tenant_id=tenant_id)
        evaluation = evaluate_vendor_documents(
            vendor_id=vendor_id,
            tenant_id=tenant_id,
            documents=documents,
            groups=config.groups,
            rules=config.rules,
            now=self._clock(),
            profile=self._profile,
            profiles=self._profiles,
            runner=self._runner,
        )
        self._results.replace_vendor_results(
            vendor_id=vendor_id,
            tenant_id=tenant_id,
            rule_results=evaluation.rule_results,
            alerts=evaluation.alerts,
            snapshot=evaluation.snapshot,
        )
        return evaluation

    def evaluate_vendor(self, vendor_id: str, tenant_id: Optional[str] = None) -> VendorRunSummary:
        tenant = self._vendors.tenant_for_vendor(vendor_id=vendor_id)
        if not tenant or (tenant_id and tenant_id != tenant):
            # A vendor outside the requested tenant is treated as unknown.
            raise UnknownVendorError(vendor_id)
        try:
            config = self.load_rule_config(tenant)
        except Exception as exc:
            logger.error("Failed to load rule config for tenant %s: %s", tenant, exc, exc_info=True)
            return VendorRunSummary(vendor_id=vendor_id, tenant_id=tenant, error=_describe(exc))
        return self._evaluate_isolated(tenant, vendor_id, config)

    def evaluate_tenant(
        self,
        tenant_id: str,
        vendor_ids: Optional[Sequence[str]] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> TenantRunSummary:
        config = self.load_rule_config(tenant_id)

        known = self._vendors.list_vendor_ids(tenant_id=tenant_id)
        if vendor_ids:
            targets = list(dict.fromkeys(str(v) for v in vendor_ids))
        else:
            targets = known

        summary = TenantRunSummary(tenant_id=tenant_id)
        if not targets:
            logger.info("No vendors found for tenant %s.", tenant_id)
            return summary

        known_ids = set(known)
        rejected = {
            v: VendorRunSummary(vendor_id=v, tenant_id=tenant_id, error=str(UnknownVendorError(v)))
            for v in targets
            if v not in known_ids
        }
        if rejected:
            logger.warning(
                "Tenant %s: %d requested vendors do not belong to the tenant: %s",
                tenant_id,
                len(rejected),
                ", ".join(rejected),
            )
        runnable = [v for v in targets if v not in rejected]

        logger.info(
            "Evaluating %d vendors for tenant %s (%d groups, %d rules, workers=%d).",
            len(runnable),
            tenant_id,
            len(config.groups),
            len(config.rules),
            self._max_workers,
        )
        evaluated: List[VendorRunSummary] = []
        skipped: List[str] = []
        if runnable:
            evaluated, skipped = self._fan_out(tenant_id, runnable, config, cancel_event)

        by_id = {v.vendor_id: v for v in evaluated}
        by_id.update(rejected)
        per_vendor = [by_id[v] for v in targets if v in by_id]

        summary.per_vendor = per_vendor
        summary.skipped_vendor_ids = skipped
        summary.cancelled = bool(skipped)
        summary.vendors_processed = len(per_vendor)
        summary.vendors_failed = sum(1 for v in per_vendor if not v.evaluated)
        summary.total_failed_rules = sum(v.failed_rule_count for v in per_vendor)
        summary.total_auto_alerts = sum(v.auto_alert_count for v in per_vendor)
        summary.total_alerts = sum(v.alert_count for v in per_vendor)

        logger.info(
            "Tenant %s: %d vendors processed, %d failed, %d skipped, %d failing rules.",
            tenant_id,
            summary.vendors_processed,
            summary.vendors_failed,
            len(skipped),
            summary.total_failed_rules,
        )
        return summary

    def _fan_out(
        self,
        tenant_id: str,
        vendor_ids: List[str],
        config: RuleConfigSnapshot,
        cancel_event: Optional[threading.Event],
    ) -> tuple[List[VendorRunSummary], List[str]]:
        completed: Dict[int, VendorRunSummary] = {}
        skipped: List[str] = []
        queue: Iterator[tuple[int, str]] = iter(enumerate(vendor_ids))

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            pending: Dict[Future, int] = {}

            def submit_next() -> bool:
                for index, vendor_id in queue:
                    if cancel_event is not None and cancel_event.is_set():
                        skipped.append(vendor_id)
                        continue
                    future = executor.submit(self._evaluate_isolated, tenant_id, vendor_id, config)
                    pending[future] = index
                    return True
                return False

            for _ in range(self._max_workers):
                if not submit_next():
                    break

            while pending:
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    completed[pending.pop(future)] = future.result()
                    submit_next()

        if skipped:
            logger.warning("Tenant %s run cancelled; %d vendors not started.", tenant_id, len(skipped))
        return [completed[i] for i in sorted(completed)], skipped

    def _evaluate_isolated(
        self, tenant_id: str, vendor_id: str, config: RuleConfigSnapshot
    ) -> VendorRunSummary:
        try:
            evaluation = self.run_vendor_pipeline(tenant_id=tenant_id, vendor_id=vendor_id, config=config)
        except Exception as exc:
            logger.error("Evaluation failed for vendor %s (tenant %s): %s", vendor_id, tenant_id, exc, exc_info=True)
            return VendorRunSummary(vendor_id=vendor_id, tenant_id=tenant_id, error=_describe(exc))

        return VendorRunSummary(
            vendor_id=vendor_id,
            tenant_id=tenant_id,
            evaluated=True,
            rules_evaluated=len(evaluation.rule_results),
            failed_rule_count=len(evaluation.failed_results),
            auto_alert_count=len(evaluation.coverage_alerts),
            alert_count=len(evaluation.alerts),
            global_score=evaluation.global_score,
            tier=evaluation.tier,
        )


def _describe(exc: Exception) -> str:
    if isinstance(exc, StoreError):
        return str(exc)
    return f"{type(exc).__name__}: {exc}"
