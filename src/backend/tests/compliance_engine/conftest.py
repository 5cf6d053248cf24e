import os
import sys


# Ensure `src/backend` is on sys.path so imports like `import common...` work.
BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

from datetime import date

import pytest

from common.compliance_engine.canonicalizer import canonicalize
from common.compliance_engine.context import EvaluationContext
from common.compliance_engine.models import RuleDefinition, RuleGroup


@pytest.fixture
def as_of() -> date:
    return date(2025, 6, 1)


@pytest.fixture
def make_group():
    def _make(group_id: str = "g1", *, severity="medium", active: bool = True, tenant_id: str = "t1") -> RuleGroup:
        return RuleGroup(id=group_id, tenant_id=tenant_id, label=f"Group {group_id}", severity=severity, active=active)

    return _make


@pytest.fixture
def make_rule():
    def _make(
        rule_id: str = "r1",
        *,
        type: str,
        field: str = "",
        condition: str,
        value=None,
        severity="medium",
        group_id: str = "g1",
        message: str = "",
        active: bool = True,
    ) -> RuleDefinition:
        return RuleDefinition(
            id=rule_id,
            group_id=group_id,
            type=type,
            field=field,
            condition=condition,
            value=value,
            severity=severity,
            message=message,
            active=active,
        )

    return _make


@pytest.fixture
def make_ctx(as_of):
    def _make(extracted: dict | None = None) -> EvaluationContext:
        raw = extracted or {}
        return EvaluationContext(record=canonicalize(raw), raw=raw, as_of=as_of)

    return _make
