from __future__ import annotations

from invoice_doctor.settings import Settings
from invoice_doctor.stages import StageResult
from invoice_doctor.table import Table

STAGE_NAME = "column_replacements"


def replace_all(text: str, source: str, target: str) -> str:
    """Replace every non-overlapping ``source`` left to right; inserted text is never rescanned."""
    return text.replace(source, target)


def apply_replacements(table: Table, settings: Settings) -> StageResult:
    result = StageResult(STAGE_NAME)
    if not settings.replacements:
        return result.skip("stage_skipped", "No column replacements specified in settings")

    columns: list[tuple[str, dict[str, str]]] = []
    for heading, pairs in settings.replacements.items():
        if not table.has_heading(heading):
            result.report(
                "unknown_heading",
                f"Heading '{heading}' not found in CSV. Skipping replacements for it.",
                column=heading,
            )
            continue
        columns.append((heading, pairs))

    for row in table.rows:
        changed = False
        for heading, pairs in columns:
            original = row.get(heading, "")
            cell = original
            for source, target in pairs.items():
                cell = replace_all(cell, source, target)
            if cell != original:
                row[heading] = cell
                changed = True
        if changed:
            result.rows_changed += 1

    if not columns:
        result.applied = False
    return result
