from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path

from skills_build.models import CheckSummary


def format_violations(summaries: list[CheckSummary]) -> list[str]:
    lines: list[str] = []
    for summary in summaries:
        if summary.ok:
            continue
        lines.append(f"\n✗ {summary.check} failed:\n")
        lines.extend(f"  {violation.format()}" for violation in summary.violations)
    return lines


def build_summary(summaries: list[CheckSummary]) -> dict:
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "status": "PASSED" if all(item.ok for item in summaries) else "FAILED",
        "violation_count": sum(len(item.violations) for item in summaries),
        "checks": [item.to_dict() for item in summaries],
    }


def write_report(summaries: list[CheckSummary], output_dir: str | Path) -> dict:
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    rows = [
        {"check": summary.check, **violation.to_dict()}
        for summary in summaries
        for violation in summary.violations
    ]

    summary = build_summary(summaries)
    summary["violations"] = rows

    report_json = out_dir / "violations.json"
    report_csv = out_dir / "violations.csv"

    _write_json(report_json, summary)
    _write_csv(report_csv, rows)

    return {
        "violations_json": str(report_json.resolve()),
        "violations_csv": str(report_csv.resolve()),
    }


def _write_json(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, ensure_ascii=True)


def _write_csv(path: Path, rows: list[dict]) -> None:
    with path.open("w", encoding="utf-8", newline="") as handle:
        if not rows:
            handle.write("")
            return

        fieldnames: list[str] = []
        seen = set()
        for row in rows:
            for key in row:
                if key not in seen:
                    seen.add(key)
                    fieldnames.append(key)

        writer = csv.DictWriter(handle, fieldnames=fieldnames)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
