from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Protocol, Sequence

from common.compliance_engine.models import Alert, RuleResult, ScoreSnapshot

from .errors import StoreError

_HISTORY_LOCK = threading.Lock()


class ResultStore(Protocol):
    def replace_vendor_results(
        self,
        *,
        vendor_id: str,
        tenant_id: str,
        rule_results: Sequence[RuleResult],
        alerts: Sequence[Alert],
        snapshot: ScoreSnapshot,
    ) -> None:
        """Replace the vendor's rule results and alerts and append one snapshot, as one unit."""
        ...

    def get_rule_results(self, vendor_id: str) -> List[RuleResult]:
        ...

    def get_alerts(self, vendor_id: str) -> List[Alert]:
        ...

    def get_snapshots(self, vendor_id: str) -> List[ScoreSnapshot]:
        ...


@dataclass
class InMemoryResultStore:
    rule_results: Dict[str, List[RuleResult]] = field(default_factory=dict)
    alerts: Dict[str, List[Alert]] = field(default_factory=dict)
    snapshots: List[ScoreSnapshot] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def replace_vendor_results(
        self,
        *,
        vendor_id: str,
        tenant_id: str,
        rule_results: Sequence[RuleResult],
        alerts: Sequence[Alert],
        snapshot: ScoreSnapshot,
    ) -> None:
        new_results = [r.model_copy() for r in rule_results]
        new_alerts = [a.model_copy() for a in alerts]
        with self._lock:
            self.rule_results[vendor_id] = new_results
            self.alerts[vendor_id] = new_alerts
            self.snapshots.append(snapshot.model_copy())

    def get_rule_results(self, vendor_id: str) -> List[RuleResult]:
        with self._lock:
            return list(self.rule_results.get(vendor_id, []))

    def get_alerts(self, vendor_id: str) -> List[Alert]:
        with self._lock:
            return list(self.alerts.get(vendor_id, []))

    def get_snapshots(self, vendor_id: str) -> List[ScoreSnapshot]:
        with self._lock:
            return [s for s in self.snapshots if s.vendor_id == vendor_id]


@dataclass(frozen=True)
class LocalResultStore:
    """JSON files on disk: one results file per vendor plus an append-only history."""

    root_dir: Path

    def replace_vendor_results(
        self,
        *,
        vendor_id: str,
        tenant_id: str,
        rule_results: Sequence[RuleResult],
        alerts: Sequence[Alert],
        snapshot: ScoreSnapshot,
    ) -> None:
        payload = {
            "vendor_id": vendor_id,
            "tenant_id": tenant_id,
            "rule_results": [r.model_dump(mode="json") for r in rule_results],
            "alerts": [a.model_dump(mode="json") for a in alerts],
        }
        path = self.root_dir / tenant_id / f"{vendor_id}.json"
        tmp_path = path.with_suffix(".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
            # The results file is only swapped in once the snapshot is on disk.
            with _HISTORY_LOCK, (self.root_dir / "score_history.jsonl").open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(snapshot.model_dump(mode="json")) + "\n")
            tmp_path.replace(path)
        except OSError as exc:
            if tmp_path.exists():
                tmp_path.unlink()
            raise StoreError(f"Failed to write results for vendor '{vendor_id}': {exc}") from exc

    def get_rule_results(self, vendor_id: str) -> List[RuleResult]:
        return [RuleResult.model_validate(r) for r in self._load_vendor(vendor_id).get("rule_results", [])]

    def get_alerts(self, vendor_id: str) -> List[Alert]:
        return [Alert.model_validate(a) for a in self._load_vendor(vendor_id).get("alerts", [])]

    def get_snapshots(self, vendor_id: str) -> List[ScoreSnapshot]:
        path = self.root_dir / "score_history.jsonl"
        if not path.exists():
            return []
        snapshots = []
        for line in path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            snap = ScoreSnapshot.model_validate_json(line)
            if snap.vendor_id == vendor_id:
                snapshots.append(snap)
        return snapshots

    def _load_vendor(self, vendor_id: str) -> Dict[str, Any]:
        for path in sorted(self.root_dir.glob(f"*/{vendor_id}.json")):
            return json.loads(path.read_text(encoding="utf-8"))
        return {}

