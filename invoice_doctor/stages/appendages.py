from __future__ import annotations

from invoice_doctor.settings import Settings
from invoice_doctor.stages import StageResult
from invoice_doctor.table import Table

STAGE_NAME = "appendages"
GUARD_TEXT = "Claim Type"


def append_matching(cell: str, rules: list[tuple[str, str]]) -> str:
    if GUARD_TEXT in cell:
        return cell
    for trigger, text in rules:
        # Each rule sees the text as extended by the rules before it.
        if trigger in cell:
            cell = f"{cell} {text}"
    return cell


def apply_appendages(table: Table, settings: Settings) -> StageResult:
    result = StageResult(STAGE_NAME)
    if not settings.appendages:
        return result.skip("stage_skipped", "No appendages specified in settings")

    for column in settings.appendages:
        if not table.has_heading(column):
            result.report(
                "unknown_heading",
                f"Heading '{column}' not found in CSV. Skipping appendages for it.",
                column=column,
            )

    for row in table.rows:
        changed = False
        for column, rules in settings.appendages.items():
            if column not in row:
                continue
            updated = append_matching(row[column], rules)
            if updated != row[column]:
                row[column] = updated
                changed = True
        if changed:
            result.rows_changed += 1
    return result
