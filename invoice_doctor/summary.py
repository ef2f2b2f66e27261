"""Versioned JSON run summary for invoice-doctor."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from invoice_doctor import __version__ as TOOL_VERSION
from invoice_doctor.issue_taxonomy import count_by_id, count_by_severity, has_problems
from invoice_doctor.table import Table

CONTRACT_VERSIONS = {
    "invoice_doctor.run_summary": "1.0.0",
    "invoice_doctor.settings": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    return {"name": name, "version": CONTRACT_VERSIONS[name]}


def column_label(heading: str, index: int, seen: set[str]) -> str:
    """Heading name, or a positional label when it is blank or repeated."""
    if not heading:
        return f"[col {index + 1}]"
    if heading in seen:
        return f"{heading} [col {index + 1}]"
    return heading


def column_fill_counts(table: Table) -> dict[str, int]:
    """Non-empty cell count per column position, in heading order."""
    if not table.headings:
        return {}
    filled = table.to_dataframe().ne("").sum().tolist()
    counts: dict[str, int] = {}
    seen: set[str] = set()
    for index, (heading, count) in enumerate(zip(table.headings, filled)):
        counts[column_label(heading, index, seen)] = int(count)
        seen.add(heading)
    return counts


def run_status(result: dict[str, Any]) -> str:
    if not result["input_ok"] or (not result["dry_run"] and not result["written"]):
        return "failed"
    if has_problems(result["issues"]):
        return "warnings"
    return "ok"


def build_run_summary_payload(result: dict[str, Any], *, input_path: Path) -> dict[str, Any]:
    contract = build_contract("invoice_doctor.run_summary")
    table = result["table"]
    issues = result["issues"]
    output_path = None if result["dry_run"] else result["output_path"]
    warnings = [str(issue) for issue in issues if issue.severity != "info"]
    stages = [
        {
            "name": stage.name,
            "applied": stage.applied,
            "rows_changed": stage.rows_changed,
            "issue_count": len(stage.issues),
        }
        for stage in result["stages"]
    ]
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": TOOL_VERSION,
        "input_file": str(input_path),
        "output_file": str(output_path) if output_path else None,
        "detected_encoding": result["detected_encoding"],
        "rows": {
            "physical_lines": result["physical_lines"],
            "logical_records": result["logical_records"],
            "output_rows": len(table),
        },
        "columns": {
            "headings": list(table.headings),
            "filled_cells": column_fill_counts(table),
        },
        "stages": stages,
        "issues": {
            "by_severity": count_by_severity(issues),
            "by_id": count_by_id(issues),
            "items": [issue.to_dict() for issue in issues],
        },
        "settings": result["settings"].to_dict(),
        "run_summary": {
            "tool": "invoice-doctor",
            "status": run_status(result),
            "generated_at": utc_now_iso(),
            "input_file": str(input_path),
            "settings_file": str(result["settings_path"]),
            "output_file": str(output_path) if output_path else None,
            "warnings_count": len(warnings),
            "warnings": warnings,
            "metrics": {
                "output_rows": len(table),
                "output_columns": len(table.headings),
                "stages_applied": sum(1 for stage in result["stages"] if stage.applied),
                "rows_changed": {stage.name: stage.rows_changed for stage in result["stages"]},
            },
        },
    }
