from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path


def _ensure_backend_on_path() -> None:
    backend_dir = Path(__file__).resolve().parents[1]
    if str(backend_dir) not in sys.path:
        sys.path.insert(0, str(backend_dir))


def _write_markdown(summary, out_path: Path) -> None:
    lines = [
        f"# Compliance Evaluation {summary.tenant_id}",
        "",
        "## Totals",
        f"- Vendors processed: {summary.vendors_processed}",
        f"- Vendors failed: {summary.vendors_failed}",
        f"- Failing rules: {summary.total_failed_rules}",
        f"- Coverage alerts: {summary.total_auto_alerts}",
        f"- Total alerts: {summary.total_alerts}",
    ]
    if summary.cancelled:
        lines.append(f"- Cancelled; not started: {', '.join(summary.skipped_vendor_ids)}")
    lines.append("")
    lines.append("## Vendors")
    lines.append("")
    lines.append("| Vendor | Score | Tier | Failing rules | Alerts | Error |")
    lines.append("| --- | --- | --- | --- | --- | --- |")
    for vendor in summary.per_vendor:
        score = "" if vendor.global_score is None else str(vendor.global_score)
        lines.append(
            f"| {vendor.vendor_id} | {score} | {vendor.tier or ''} | "
            f"{vendor.failed_rule_count} | {vendor.alert_count} | {vendor.error or ''} |"
        )
    out_path.write_text("\n".join(lines) + "\n")


def run_compliance_evaluation(
    *,
    fixtures_dir: Path,
    tenant_id: str,
    vendor_ids: list[str] | None = None,
    profile: str | None = None,
    max_workers: int | None = None,
    results_dir: Path | None = None,
):
    _ensure_backend_on_path()

    from pipelines.bootstrap import build_orchestrator
    from pipelines.config import get_engine_config

    config = replace(get_engine_config(), fixtures_dir=fixtures_dir)
    if profile:
        config = replace(config, profile=profile)
    if max_workers:
        config = replace(config, max_workers=max_workers)

    orchestrator = build_orchestrator(config, source="fixtures", results_dir=results_dir)
    return orchestrator.evaluate_tenant(tenant_id, vendor_ids=vendor_ids or None)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Evaluate every vendor of a tenant against a fixtures directory and write JSON/MD summaries."
    )
    parser.add_argument(
        "--fixtures-dir",
        required=True,
        help="Fixtures root containing <tenant_id>/rule_groups.json, rules.json and vendors/*.json.",
    )
    parser.add_argument("--tenant-id", required=True, help="Tenant to evaluate.")
    parser.add_argument(
        "--vendor-id",
        action="append",
        dest="vendor_ids",
        default=None,
        help="Restrict the run to these vendors (repeatable). Defaults to every vendor in the fixtures.",
    )
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Output directory for summary files (defaults to the current directory).",
    )
    parser.add_argument(
        "--results-dir",
        default=None,
        help="Persist rule results, alerts and score history as JSON under this directory.",
    )
    parser.add_argument("--profile", default=None, help="Coverage profile (e.g. standard_construction).")
    parser.add_argument("--max-workers", type=int, default=None, help="Concurrent vendor evaluations.")
    args = parser.parse_args()

    _ensure_backend_on_path()
    from common.logging_utils import configure_logging
    from pipelines.config import get_engine_config

    configure_logging(get_engine_config().log_level)

    output_dir = Path(args.output_dir).resolve() if args.output_dir else Path(".").resolve()
    output_dir.mkdir(parents=True, exist_ok=True)

    summary = run_compliance_evaluation(
        fixtures_dir=Path(args.fixtures_dir).resolve(),
        tenant_id=args.tenant_id,
        vendor_ids=args.vendor_ids,
        profile=args.profile,
        max_workers=args.max_workers,
        results_dir=Path(args.results_dir).resolve() if args.results_dir else None,
    )

    out_json = output_dir / f"compliance_summary_{args.tenant_id}.json"
    out_md = output_dir / f"compliance_summary_{args.tenant_id}.md"
    out_json.write_text(json.dumps(summary.model_dump(mode="json", by_alias=True), indent=2))
    _write_markdown(summary, out_md)

    print(f"Wrote {out_json}")
    print(f"Wrote {out_md}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
