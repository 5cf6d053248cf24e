"""Built-in coverage checks applied under a profile, independent of tenant rules.

Absent coverage is reported by `missing_coverage_findings`; the limit checks
only look at coverage that is present, so a gap is never reported as both
missing and too low.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Mapping, Optional

from .config import CoverageProfile, get_coverage_profile
from .context import to_number
from .models import CanonicalPolicyRecord, CoverageFinding, Severity


def missing_endorsements(
    record: CanonicalPolicyRecord,
    profile: CoverageProfile | str | None = None,
    *,
    profiles: Optional[Mapping[str, CoverageProfile]] = None,
) -> List[str]:
    """Required endorsement codes absent from the record, in required-list order."""
    cfg = _resolve(profile, profiles)
    present = set(record.endorsements)
    return [code for code in cfg.required_endorsements if code not in present]


def check_coverage_limits(
    record: CanonicalPolicyRecord,
    profile: CoverageProfile | str | None = None,
    *,
    profiles: Optional[Mapping[str, CoverageProfile]] = None,
) -> List[CoverageFinding]:
    cfg = _resolve(profile, profiles)
    limits = cfg.limits

    gl = to_number(record.gl_limit)
    auto = to_number(record.auto_limit)
    umbrella = to_number(record.umbrella_limit)
    wc = to_number(record.wc_employer_liability)

    findings: List[CoverageFinding] = []
    for code, label, actual, minimum in (
        ("GL_LIMIT_TOO_LOW", "General Liability limit", gl, limits.gl_min),
        ("AUTO_LIMIT_TOO_LOW", "Automobile Liability limit", auto, limits.auto_min),
        (
            "WC_LIMIT_TOO_LOW",
            "Workers Compensation Employers Liability limit",
            wc,
            limits.wc_min,
        ),
        ("COMBINED_LIMIT_TOO_LOW", "Combined GL + Umbrella limit", gl + umbrella, limits.combined_liability_min),
    ):
        if minimum and actual > 0 and actual < minimum:
            findings.append(
                CoverageFinding(
                    code=code,
                    message=f"{label} ({_fmt(actual)}) is below required minimum ({_fmt(minimum)}).",
                    severity=Severity.HIGH,
                    values={"actual": str(actual), "minimum": str(minimum), "profile": cfg.name},
                )
            )
    return findings


def missing_coverage_findings(record: CanonicalPolicyRecord) -> List[CoverageFinding]:
    findings: List[CoverageFinding] = []
    if not record.has_gl:
        findings.append(
            CoverageFinding(
                code="MISSING_GL",
                message="General Liability coverage is missing.",
                severity=Severity.CRITICAL,
            )
        )
    if not record.has_auto:
        findings.append(
            CoverageFinding(
                code="MISSING_AUTO",
                message="Automobile Liability coverage is missing.",
                severity=Severity.HIGH,
            )
        )
    if not record.has_wc:
        findings.append(
            CoverageFinding(
                code="MISSING_WC",
                message="Workers Compensation coverage is missing.",
                severity=Severity.HIGH,
            )
        )
    return findings


def run_coverage_checks(
    record: CanonicalPolicyRecord,
    profile: CoverageProfile | str | None = None,
    *,
    profiles: Optional[Mapping[str, CoverageProfile]] = None,
) -> List[CoverageFinding]:
    """All baseline findings for a record: missing coverage, endorsements, then limits."""
    cfg = _resolve(profile, profiles)
    findings = missing_coverage_findings(record)

    missing = missing_endorsements(record, cfg)
    if missing:
        findings.append(
            CoverageFinding(
                code="MISSING_ENDORSEMENTS",
                message=f"Missing required endorsements: {', '.join(missing)}",
                severity=Severity.HIGH,
                values={"missing": missing, "profile": cfg.name},
            )
        )

    findings.extend(check_coverage_limits(record, cfg))
    return findings


def _resolve(
    profile: CoverageProfile | str | None,
    profiles: Optional[Mapping[str, CoverageProfile]],
) -> CoverageProfile:
    if isinstance(profile, CoverageProfile):
        return profile
    return get_coverage_profile(profile, profiles)


def _fmt(amount: Decimal) -> str:
    if amount == amount.to_integral_value():
        return f"{int(amount):,}"
    return f"{amount:,.2f}"
