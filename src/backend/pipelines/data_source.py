from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from pydantic import ValidationError

from common.compliance_engine.models import RuleDefinition, RuleGroup

from .errors import StoreError


class DocumentStore(Protocol):
    def load_policy_documents(self, *, vendor_id: str, tenant_id: str) -> List[Any]:
        """Return the extracted field mappings of every policy on file for the vendor."""
        ...


class RuleConfigStore(Protocol):
    def load_rule_groups(self, *, tenant_id: str) -> List[RuleGroup]:
        """Return the tenant's active rule groups."""
        ...

    def load_rules(self, *, tenant_id: str) -> List[RuleDefinition]:
        """Return the active rules belonging to the tenant's groups."""
        ...


class VendorDirectory(Protocol):
    def list_vendor_ids(self, *, tenant_id: str) -> List[str]:
        ...

    def tenant_for_vendor(self, *, vendor_id: str) -> Optional[str]:
        ...


@dataclass(frozen=True)
class VendorRecord:
    vendor_id: str
    tenant_id: str
    documents: tuple[Any, ...] = ()


@dataclass
class InMemoryDataSource:
    """Document store, rule config store and vendor directory backed by dicts."""

    vendors: Dict[str, VendorRecord] = field(default_factory=dict)
    groups: List[RuleGroup] = field(default_factory=list)
    rules: List[RuleDefinition] = field(default_factory=list)

    def add_vendor(self, vendor_id: str, tenant_id: str, documents: Iterable[Any] = ()) -> None:
        self.vendors[vendor_id] = VendorRecord(vendor_id=vendor_id, tenant_id=tenant_id, documents=tuple(documents))

    def load_policy_documents(self, *, vendor_id: str, tenant_id: str) -> List[Any]:
        record = self.vendors.get(vendor_id)
        if record is None or record.tenant_id != tenant_id:
            return []
        return list(record.documents)

    def load_rule_groups(self, *, tenant_id: str) -> List[RuleGroup]:
        return [g for g in self.groups if g.tenant_id == tenant_id and g.active]

    def load_rules(self, *, tenant_id: str) -> List[RuleDefinition]:
        group_ids = {g.id for g in self.load_rule_groups(tenant_id=tenant_id)}
        return [r for r in self.rules if r.group_id in group_ids and r.active]

    def list_vendor_ids(self, *, tenant_id: str) -> List[str]:
        return [v.vendor_id for v in self.vendors.values() if v.tenant_id == tenant_id]

    def tenant_for_vendor(self, *, vendor_id: str) -> Optional[str]:
        record = self.vendors.get(vendor_id)
        return record.tenant_id if record else None


class FixturesDataSource:
    """Reads tenants from a fixtures directory.

    Layout::

        <root>/<tenant_id>/rule_groups.json
        <root>/<tenant_id>/rules.json
        <root>/<tenant_id>/vendors/<vendor_id>.json

    A vendor file holds either a list of policy rows (``{"extracted": ...}``)
    or a list of extracted mappings.
    """

    def __init__(self, fixtures_root: Path) -> None:
        self._root = Path(fixtures_root)

    def load_policy_documents(self, *, vendor_id: str, tenant_id: str) -> List[Any]:
        path = self._vendors_dir(tenant_id) / f"{vendor_id}.json"
        if not path.exists():
            return []
        payload = _load_json(path)
        if isinstance(payload, dict):
            payload = payload.get("policies", [payload])
        if not isinstance(payload, list):
            return []
        documents = []
        for row in payload:
            if isinstance(row, dict) and "extracted" in row:
                documents.append(row.get("extracted"))
            else:
                documents.append(row)
        return documents

    def load_rule_groups(self, *, tenant_id: str) -> List[RuleGroup]:
        rows = self._load_rows(self._root / tenant_id / "rule_groups.json")
        try:
            groups = [RuleGroup.model_validate({"tenant_id": tenant_id, **row}) for row in rows]
        except ValidationError as exc:
            raise StoreError(f"Invalid rule group fixture for tenant '{tenant_id}': {exc}") from exc
        return [g for g in groups if g.active]

    def load_rules(self, *, tenant_id: str) -> List[RuleDefinition]:
        group_ids = {g.id for g in self.load_rule_groups(tenant_id=tenant_id)}
        rows = self._load_rows(self._root / tenant_id / "rules.json")
        try:
            rules = [RuleDefinition.model_validate(row) for row in rows]
        except ValidationError as exc:
            raise StoreError(f"Invalid rule fixture for tenant '{tenant_id}': {exc}") from exc
        return [r for r in rules if r.active and r.group_id in group_ids]

    def list_vendor_ids(self, *, tenant_id: str) -> List[str]:
        vendors_dir = self._vendors_dir(tenant_id)
        if not vendors_dir.is_dir():
            return []
        return sorted(p.stem for p in vendors_dir.glob("*.json"))

    def tenant_for_vendor(self, *, vendor_id: str) -> Optional[str]:
        if not self._root.is_dir():
            return None
        for tenant_dir in sorted(p for p in self._root.iterdir() if p.is_dir()):
            if (tenant_dir / "vendors" / f"{vendor_id}.json").exists():
                return tenant_dir.name
        return None

    def _vendors_dir(self, tenant_id: str) -> Path:
        return self._root / tenant_id / "vendors"

    def _load_rows(self, path: Path) -> List[Dict[str, Any]]:
        if not path.exists():
            return []
        payload = _load_json(path)
        if not isinstance(payload, list):
            raise StoreError(f"Expected a JSON list in {path}.")
        return [row for row in payload if isinstance(row, dict)]


def _load_json(path: Path) -> Any:
    try:
        with path.open(encoding="utf-8") as handle:
            return json.load(handle)
    except (OSError, ValueError) as exc:
        raise StoreError(f"Failed to read {path}: {exc}") from exc
