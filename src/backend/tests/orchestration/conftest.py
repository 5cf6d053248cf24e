import os
import sys


# Ensure `src/backend` is on sys.path so imports like `import pipelines...` work.
BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

from datetime import datetime, timezone

import pytest

from common.compliance_engine.models import RuleDefinition, RuleGroup
from pipelines.data_source import InMemoryDataSource
from pipelines.orchestrator import ComplianceOrchestrator
from pipelines.result_store import InMemoryResultStore


COMPLIANT_POLICY = {
    "namedInsured": "Acme Builders",
    "policyExpiration": "2026-05-31",
    "limits": {
        "general_liability": "1,000,000",
        "auto_liability": "1,000,000",
        "umbrella": "1,000,000",
        "employers_liability": "500,000",
    },
    "endorsements": ["CG2010", "CG2037"],
}

LOW_GL_POLICY = {
    **COMPLIANT_POLICY,
    "limits": {**COMPLIANT_POLICY["limits"], "general_liability": "500,000", "umbrella": "2,000,000"},
}


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def tenant_rules():
    groups = [
        RuleGroup(id="g-limits", tenant_id="t1", label="Limits", severity="high"),
        RuleGroup(id="g-docs", tenant_id="t1", label="Documents", severity="medium"),
    ]
    rules = [
        RuleDefinition(
            id="r-gl",
            group_id="g-limits",
            type="limit",
            field="gl_limit",
            condition="gte",
            value=1000000,
            severity="critical",
            message="GL limit below 1M",
        ),
        RuleDefinition(
            id="r-exp",
            group_id="g-docs",
            type="date",
            field="expiration_date",
            condition="after",
            value="today",
            severity="high",
        ),
    ]
    return groups, rules


@pytest.fixture
def data_source(tenant_rules):
    groups, rules = tenant_rules
    source = InMemoryDataSource(groups=list(groups), rules=list(rules))
    source.add_vendor("v-good", "t1", [COMPLIANT_POLICY])
    source.add_vendor("v-low", "t1", [LOW_GL_POLICY])
    source.add_vendor("v-other", "t2", [COMPLIANT_POLICY])
    return source


@pytest.fixture
def result_store():
    return InMemoryResultStore()


@pytest.fixture
def make_orchestrator(data_source, result_store, fixed_clock):
    def _make(*, documents=None, rule_config=None, vendors=None, results=None, max_workers: int = 2, **kwargs):
        return ComplianceOrchestrator(
            documents=documents or data_source,
            rule_config=rule_config or data_source,
            vendors=vendors or data_source,
            results=results or result_store,
            max_workers=max_workers,
            clock=fixed_clock,
            **kwargs,
        )

    return _make
