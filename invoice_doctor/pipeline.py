"""
Fixed-order transformation pipeline.

Stages run in this order, each against the same Settings value:

    1. description date extraction
    2. column replacements
    3. multi-key stable sort
    4. date reinsertion
    5. due-date shift
    6. conditional appendage

A stage that is missing its column or setting becomes a no-op and the next
stage still runs.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from invoice_doctor.csv_codec import load_table, write_table
from invoice_doctor.issue_taxonomy import Issue
from invoice_doctor.settings import Settings, read_settings
from invoice_doctor.stages import StageResult
from invoice_doctor.stages.appendages import apply_appendages
from invoice_doctor.stages.dates import (
    extract_description_dates,
    reinsert_description_dates,
    shift_due_dates,
)
from invoice_doctor.stages.replacements import apply_replacements
from invoice_doctor.stages.sorting import apply_sort_order
from invoice_doctor.table import Table


def run_pipeline(table: Table, settings: Settings, issues: list[Issue] | None = None) -> list[StageResult]:
    stages = [
        extract_description_dates(table),
        apply_replacements(table, settings),
        apply_sort_order(table, settings),
        reinsert_description_dates(table),
        shift_due_dates(table, settings),
        apply_appendages(table, settings),
    ]
    if issues is not None:
        for stage in stages:
            issues.extend(stage.issues)
    return stages


def derive_output_path(input_path: Path, postfix: str) -> Path:
    return input_path.with_name(f"{input_path.stem}{postfix}{input_path.suffix}")


def execute_run(
    input_path: str | Path,
    settings_path: str | Path,
    output_path: str | Path | None = None,
    *,
    dry_run: bool = False,
) -> dict[str, Any]:
    input_path = Path(input_path)
    settings_path = Path(settings_path)
    issues: list[Issue] = []

    settings = read_settings(settings_path, issues)
    loaded = load_table(input_path, issues)
    table = loaded["table"]
    stages = run_pipeline(table, settings, issues)

    if output_path is None:
        output_path = derive_output_path(input_path, settings.new_file_name_postfix)
    output_path = Path(output_path)

    written = False
    if not dry_run:
        written = write_table(table, output_path, issues)

    return {
        "table": table,
        "settings": settings,
        "stages": stages,
        "issues": issues,
        "input_ok": loaded["ok"],
        "detected_encoding": loaded["detected_encoding"],
        "physical_lines": loaded["physical_lines"],
        "logical_records": loaded["logical_records"],
        "settings_path": settings_path,
        "output_path": output_path,
        "written": written,
        "dry_run": dry_run,
    }
