from __future__ import annotations

from invoice_doctor.settings import Settings, SortKey
from invoice_doctor.stages import StageResult
from invoice_doctor.table import Row, Table

STAGE_NAME = "sort_order"


def stable_sort_rows(rows: list[Row], sort_keys: list[SortKey]) -> None:
    """
    Sort rows in place by several keys, most significant first.

    One stable pass per key, least significant key first, so the last pass
    (the most significant key) dominates and its ties keep the order the
    earlier passes produced. Values compare as plain text.
    """
    for key in reversed(sort_keys):
        rows.sort(key=lambda row, heading=key.heading: row.get(heading, ""), reverse=not key.ascending)


def apply_sort_order(table: Table, settings: Settings) -> StageResult:
    result = StageResult(STAGE_NAME)
    if not settings.sort_order:
        return result.skip("stage_skipped", "No sort order specified in settings")

    usable: list[SortKey] = []
    for key in settings.sort_order:
        if not table.has_heading(key.heading):
            result.report(
                "unknown_heading",
                f"Heading '{key.heading}' not found in CSV. Skipping sort key.",
                column=key.heading,
            )
            continue
        usable.append(key)

    if not usable:
        result.applied = False
        return result

    before = [id(row) for row in table.rows]
    stable_sort_rows(table.rows, usable)
    result.rows_changed = sum(1 for old, row in zip(before, table.rows) if old != id(row))
    return result
