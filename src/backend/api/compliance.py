from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from common.compliance_engine.models import CamelModel
from pipelines.bootstrap import build_orchestrator
from pipelines.config import get_engine_config
from pipelines.errors import StoreError, UnknownVendorError
from pipelines.orchestrator import ComplianceOrchestrator


router = APIRouter(prefix="/engine", tags=["engine"])


class VendorEvaluationRequest(CamelModel):
    tenant_id: Optional[str] = None


class TenantEvaluationRequest(CamelModel):
    vendor_ids: Optional[List[str]] = None


@lru_cache(maxsize=1)
def get_orchestrator() -> ComplianceOrchestrator:
    return build_orchestrator(get_engine_config(), source="sql")


@router.post("/vendors/{vendor_id}/evaluate")
def evaluate_vendor(
    vendor_id: str,
    body: Optional[VendorEvaluationRequest] = None,
    orchestrator: ComplianceOrchestrator = Depends(get_orchestrator),
):
    tenant_id = body.tenant_id if body else None
    try:
        summary = orchestrator.evaluate_vendor(vendor_id, tenant_id=tenant_id)
    except UnknownVendorError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    if not summary.evaluated:
        raise HTTPException(
            status_code=502,
            detail={
                "evaluated": False,
                "vendorId": summary.vendor_id,
                "tenantId": summary.tenant_id,
                "error": summary.error,
            },
        )

    return summary.model_dump(
        mode="json",
        by_alias=True,
        include={
            "evaluated",
            "vendor_id",
            "tenant_id",
            "rules_evaluated",
            "failed_rule_count",
            "alert_count",
            "global_score",
            "tier",
        },
    )


@router.post("/tenants/{tenant_id}/evaluate")
def evaluate_tenant(
    tenant_id: str,
    body: Optional[TenantEvaluationRequest] = None,
    orchestrator: ComplianceOrchestrator = Depends(get_orchestrator),
):
    vendor_ids = body.vendor_ids if body else None
    try:
        summary = orchestrator.evaluate_tenant(tenant_id, vendor_ids=vendor_ids)
    except StoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return summary.model_dump(mode="json", by_alias=True)
