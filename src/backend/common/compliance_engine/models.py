from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel


class _LenientEnum(str, Enum):
    """Maps unrecognised values (any case) to the UNKNOWN member."""

    @classmethod
    def _missing_(cls, value: object):
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return cls("unknown")


class Severity(_LenientEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


class RuleType(_LenientEnum):
    COVERAGE = "coverage"
    LIMIT = "limit"
    ENDORSEMENT = "endorsement"
    DATE = "date"
    CUSTOM = "custom"
    UNKNOWN = "unknown"


class RuleCondition(_LenientEnum):
    EXISTS = "exists"
    MISSING = "missing"
    GTE = "gte"
    LTE = "lte"
    REQUIRES = "requires"
    BEFORE = "before"
    AFTER = "after"
    UNKNOWN = "unknown"


class FieldScope(str, Enum):
    ANY = "any"
    RAW = "raw"
    CANONICAL = "canonical"


class AlertSource(str, Enum):
    COVERAGE = "coverage"
    RULE = "rule"


class FieldRef(BaseModel):
    """Typed reference to a value in the raw extraction or the canonical record.

    Text form is a dot-path (``limits.general_liability``). A ``raw:`` or
    ``canonical:`` prefix pins the lookup to one side; without a prefix the raw
    extraction is consulted first, then the canonical record.
    """

    model_config = ConfigDict(frozen=True)

    scope: FieldScope = FieldScope.ANY
    path: tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: Optional[str]) -> "FieldRef":
        raw = (text or "").strip()
        scope = FieldScope.ANY
        for candidate in (FieldScope.RAW, FieldScope.CANONICAL):
            prefix = f"{candidate.value}:"
            if raw.lower().startswith(prefix):
                scope = candidate
                raw = raw[len(prefix):].strip()
                break
        path = tuple(part for part in raw.split(".") if part)
        return cls(scope=scope, path=path)

    @property
    def text(self) -> str:
        return ".".join(self.path)

    def __str__(self) -> str:
        if self.scope == FieldScope.ANY:
            return self.text
        return f"{self.scope.value}:{self.text}"


class CanonicalPolicyRecord(BaseModel):
    named_insured: Optional[str] = None
    expiration_date: Optional[date] = None

    gl_limit: Optional[Decimal] = None
    gl_each_occurrence: Optional[Decimal] = None
    gl_aggregate: Optional[Decimal] = None
    auto_limit: Optional[Decimal] = None
    umbrella_limit: Optional[Decimal] = None
    wc_employer_liability: Optional[Decimal] = None

    endorsements: List[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_gl(self) -> bool:
        return _is_positive(self.gl_limit)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_auto(self) -> bool:
        return _is_positive(self.auto_limit)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_umbrella(self) -> bool:
        return _is_positive(self.umbrella_limit)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_wc(self) -> bool:
        return _is_positive(self.wc_employer_liability)

    def has_endorsement(self, code: str) -> bool:
        return code in self.endorsements

    def get(self, path: tuple[str, ...]) -> Any:
        """Accessor used by field references; unknown or nested paths resolve to None."""
        if len(path) != 1:
            return None
        name = path[0]
        if name in type(self).model_fields or name in type(self).model_computed_fields:
            return getattr(self, name)
        return None


def _is_positive(value: Optional[Decimal]) -> bool:
    return value is not None and value > 0


class RuleGroup(BaseModel):
    id: str
    tenant_id: str = ""
    label: str = ""
    description: str = ""
    severity: Severity = Severity.MEDIUM
    active: bool = True

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("severity", mode="before")
    @classmethod
    def _coerce_severity(cls, value: Any) -> Severity:
        return Severity.MEDIUM if value in (None, "") else Severity(value)


class RuleDefinition(BaseModel):
    id: str
    group_id: str
    type: RuleType = RuleType.UNKNOWN
    field: str = ""
    condition: RuleCondition = RuleCondition.UNKNOWN
    value: Any = None
    severity: Severity = Severity.MEDIUM
    message: str = ""
    active: bool = True

    @field_validator("id", "group_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> RuleType:
        return RuleType(value)

    @field_validator("condition", mode="before")
    @classmethod
    def _coerce_condition(cls, value: Any) -> RuleCondition:
        return RuleCondition(value)

    @field_validator("severity", mode="before")
    @classmethod
    def _coerce_severity(cls, value: Any) -> Severity:
        return Severity.MEDIUM if value in (None, "") else Severity(value)

    @property
    def field_ref(self) -> FieldRef:
        return FieldRef.parse(self.field)


class RuleResult(BaseModel):
    rule_id: str
    group_id: str
    rule_type: RuleType
    condition: RuleCondition
    field: str = ""

    passed: bool
    field_present: bool = False
    severity: Severity = Severity.MEDIUM
    actual: Any = None
    expected: Any = None
    message: str = ""


class Alert(BaseModel):
    vendor_id: str
    tenant_id: str
    code: str
    message: str
    severity: Severity
    source: AlertSource = AlertSource.COVERAGE
    rule_id: Optional[str] = None
    created_at: Optional[datetime] = None


class CoverageFinding(BaseModel):
    """Alert payload emitted by the built-in coverage checks, before vendor scoping."""

    code: str
    message: str
    severity: Severity
    values: Dict[str, Any] = Field(default_factory=dict)


class GroupScore(BaseModel):
    group_id: str
    label: str = ""
    severity: Severity = Severity.MEDIUM
    passed: bool = True
    score: int = 100
    failed_rule_ids: List[str] = Field(default_factory=list)


class ScoreSnapshot(BaseModel):
    vendor_id: str
    tenant_id: str
    score: int
    tier: str
    created_at: datetime


class VendorEvaluation(BaseModel):
    vendor_id: str
    tenant_id: str
    profile: str
    record: CanonicalPolicyRecord
    rule_results: List[RuleResult] = Field(default_factory=list)
    group_scores: List[GroupScore] = Field(default_factory=list)
    coverage_alerts: List[Alert] = Field(default_factory=list)
    alerts: List[Alert] = Field(default_factory=list)
    global_score: int = 100
    tier: str = ""
    snapshot: ScoreSnapshot

    @property
    def failed_results(self) -> List[RuleResult]:
        return [r for r in self.rule_results if not r.passed]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VendorRunSummary(CamelModel):
    vendor_id: str
    tenant_id: Optional[str] = None
    evaluated: bool = False
    rules_evaluated: int = 0
    failed_rule_count: int = 0
    auto_alert_count: int = 0
    alert_count: int = 0
    global_score: Optional[int] = None
    tier: Optional[str] = None
    error: Optional[str] = None


class TenantRunSummary(CamelModel):
    tenant_id: str
    vendors_processed: int = 0
    vendors_failed: int = 0
    total_failed_rules: int = 0
    total_auto_alerts: int = 0
    total_alerts: int = 0
    cancelled: bool = False
    skipped_vendor_ids: List[str] = Field(default_factory=list)
    per_vendor: List[VendorRunSummary] = Field(default_factory=list)
