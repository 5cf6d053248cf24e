from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from .context import normalize_endorsement_code

DEFAULT_PROFILE = "standard_construction"


class LimitThresholds(BaseModel):
    # A zero minimum disables that check.
    gl_min: Decimal = Decimal("0")
    auto_min: Decimal = Decimal("0")
    wc_min: Decimal = Decimal("0")
    # GL + Umbrella combined target.
    combined_liability_min: Decimal = Decimal("0")


class CoverageProfile(BaseModel):
    """Built-in coverage requirements applied to every vendor under a profile."""

    name: str
    required_endorsements: List[str] = Field(default_factory=list)
    limits: LimitThresholds = Field(default_factory=LimitThresholds)

    @field_validator("required_endorsements")
    @classmethod
    def _normalize_codes(cls, value: List[str]) -> List[str]:
        return [code for code in (normalize_endorsement_code(v) for v in value) if code]


COVERAGE_PROFILES: Dict[str, CoverageProfile] = {
    # Generic construction vendor
    "standard_construction": CoverageProfile(
        name="standard_construction",
        required_endorsements=["CG2010", "CG2037"],
        limits=LimitThresholds(
            gl_min=Decimal("1000000"),
            auto_min=Decimal("1000000"),
            wc_min=Decimal("500000"),
            combined_liability_min=Decimal("2000000"),
        ),
    ),
    "heavy_construction": CoverageProfile(
        name="heavy_construction",
        required_endorsements=["CG2010", "CG2037", "CG2404", "CG2001"],
        limits=LimitThresholds(
            gl_min=Decimal("2000000"),
            auto_min=Decimal("1000000"),
            wc_min=Decimal("1000000"),
            combined_liability_min=Decimal("4000000"),
        ),
    ),
}


def get_coverage_profile(
    name: Optional[str],
    profiles: Optional[Mapping[str, CoverageProfile]] = None,
) -> CoverageProfile:
    """Look up a profile by name, falling back to the standard profile."""
    catalog = profiles if profiles is not None else COVERAGE_PROFILES
    key = (name or "").strip().lower()
    if key in catalog:
        return catalog[key]
    if DEFAULT_PROFILE in catalog:
        return catalog[DEFAULT_PROFILE]
    return COVERAGE_PROFILES[DEFAULT_PROFILE]
