from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Mapping, Optional

from .models import CanonicalPolicyRecord, FieldRef, FieldScope

_NON_NUMERIC = re.compile(r"[^0-9.]")
_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_RELATIVE_DATE = re.compile(r"^today\s*(?:([+-])\s*(\d+)\s*d?)?$", re.IGNORECASE)
_DATE_FORMATS = ("%m/%d/%Y", "%Y/%m/%d", "%Y-%m-%d")

MISSING = object()


@dataclass(frozen=True)
class FieldValue:
    present: bool
    value: Any = None


@dataclass(frozen=True)
class EvaluationContext:
    record: CanonicalPolicyRecord
    raw: Mapping[str, Any] = field(default_factory=dict)
    as_of: date = field(default_factory=lambda: datetime.now(timezone.utc).date())

    def resolve(self, ref: FieldRef) -> FieldValue:
        if not ref.path:
            return FieldValue(present=False)
        if ref.scope in (FieldScope.ANY, FieldScope.RAW):
            value = lookup_path(self.raw, ref.path)
            if value is not MISSING and value is not None:
                return FieldValue(present=True, value=value)
            if ref.scope == FieldScope.RAW:
                return FieldValue(present=False)
        value = self.record.get(ref.path)
        if value is None:
            return FieldValue(present=False)
        return FieldValue(present=True, value=value)


def lookup_path(data: Mapping[str, Any], path: tuple[str, ...]) -> Any:
    """Resolve a dot-path inside a mapping.

    A literal key equal to the joined path wins over nested traversal, so
    flat extractions keyed like ``policy.coverage_type`` still resolve.
    """
    if not isinstance(data, Mapping) or not path:
        return MISSING
    joined = ".".join(path)
    if joined in data:
        return data[joined]
    current: Any = data
    for part in path:
        if not isinstance(current, Mapping) or part not in current:
            return MISSING
        current = current[part]
    return current


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def parse_amount(value: Any) -> Optional[Decimal]:
    """Parse a currency-ish value; None when nothing numeric can be recovered."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        try:
            parsed = Decimal(str(value))
        except InvalidOperation:
            return None
        return parsed if parsed.is_finite() else None
    if not isinstance(value, str):
        return None
    cleaned = _NON_NUMERIC.sub("", str(value))
    if not cleaned or cleaned == ".":
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def to_number(value: Any) -> Decimal:
    parsed = parse_amount(value)
    return parsed if parsed is not None else Decimal("0")


def parse_date(value: Any, *, as_of: Optional[date] = None) -> Optional[date]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    if as_of is not None:
        match = _RELATIVE_DATE.match(text)
        if match:
            sign, days = match.groups()
            offset = int(days) if days else 0
            return as_of + timedelta(days=-offset if sign == "-" else offset)
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def normalize_endorsement_code(value: Any) -> str:
    return _NON_ALNUM.sub("", str(value).strip().upper())


def round_half_up(value: Decimal | float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
