"""Normalise raw extracted certificate fields into a `CanonicalPolicyRecord`.

Each canonical field has an ordered list of alias paths; the first alias
holding a non-empty value wins. Nothing here raises on bad input: missing or
malformed values fall back to None / empty.
"""

from __future__ import annotations

import json
import logging
import re
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .context import MISSING, is_empty, lookup_path, normalize_endorsement_code, parse_amount, parse_date
from .models import CanonicalPolicyRecord

logger = logging.getLogger(__name__)

_ENDORSEMENT_SPLIT = re.compile(r"[,;\n]")

FIELD_ALIASES: Dict[str, tuple[tuple[str, ...], ...]] = {
    "named_insured": (("namedInsured",), ("insuredName",), ("named_insured",)),
    "expiration_date": (
        ("policyExpiration",),
        ("expirationDate",),
        ("expDate",),
        ("expiration_date",),
    ),
    "gl_limit": (
        ("limits", "general_liability"),
        ("limits", "generalLiability"),
        ("generalLiabilityLimit",),
        ("gl_limit",),
    ),
    "gl_each_occurrence": (
        ("limits", "glEachOccurrence"),
        ("generalLiabilityEachOccurrence",),
    ),
    "gl_aggregate": (
        ("limits", "glAggregate"),
        ("generalLiabilityAggregate",),
    ),
    "auto_limit": (
        ("limits", "auto_liability"),
        ("limits", "autoLiability"),
        ("autoLiabilityLimit",),
        ("auto_limit",),
    ),
    "umbrella_limit": (
        ("limits", "umbrella"),
        ("limits", "umbrellaLiability"),
        ("umbrellaLimit",),
        ("umbrella_limit",),
    ),
    "wc_employer_liability": (
        ("limits", "employers_liability"),
        ("limits", "employersLiability"),
        ("employersLiabilityLimit",),
        ("wc_employer_liability",),
    ),
}

AMOUNT_FIELDS = (
    "gl_limit",
    "gl_each_occurrence",
    "gl_aggregate",
    "auto_limit",
    "umbrella_limit",
    "wc_employer_liability",
)


def first_match(extracted: Mapping[str, Any], aliases: Iterable[tuple[str, ...]]) -> Any:
    for path in aliases:
        value = lookup_path(extracted, path)
        if value is not MISSING and not isinstance(value, bool) and not is_empty(value):
            return value
    return None


def merge_policy_documents(documents: Optional[Iterable[Any]]) -> Dict[str, Any]:
    """Flatten a vendor's extracted policy documents into one mapping.

    Later documents override earlier keys. JSON text is decoded; anything that
    is not a mapping after decoding is skipped.
    """
    merged: Dict[str, Any] = {}
    for doc in documents or ():
        if isinstance(doc, (str, bytes)):
            try:
                doc = json.loads(doc)
            except ValueError:
                logger.debug("Skipping undecodable extracted document")
                continue
        if isinstance(doc, Mapping):
            merged.update(doc)
    return merged


def canonicalize(extracted: Optional[Mapping[str, Any]]) -> CanonicalPolicyRecord:
    if not isinstance(extracted, Mapping):
        extracted = {}

    values: Dict[str, Any] = {}

    named = first_match(extracted, FIELD_ALIASES["named_insured"])
    values["named_insured"] = str(named).strip() if isinstance(named, (str, int, float)) else None
    values["expiration_date"] = parse_date(first_match(extracted, FIELD_ALIASES["expiration_date"]))

    for name in AMOUNT_FIELDS:
        values[name] = _non_negative(parse_amount(first_match(extracted, FIELD_ALIASES[name])))

    values["endorsements"] = normalize_endorsements(extracted.get("endorsements"))
    return CanonicalPolicyRecord(**values)


def normalize_endorsements(raw: Any) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        items: Iterable[Any] = _ENDORSEMENT_SPLIT.split(raw)
    elif isinstance(raw, (list, tuple)):
        items = raw
    else:
        return []
    codes = []
    for item in items:
        if item is None or isinstance(item, (dict, list)):
            continue
        code = normalize_endorsement_code(item)
        if code:
            codes.append(code)
    return codes


def _non_negative(value: Optional[Decimal]) -> Optional[Decimal]:
    if value is None or value < 0:
        return None
    return value
