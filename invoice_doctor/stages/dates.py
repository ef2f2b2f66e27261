"""
Date handling stages.

Descriptions in the invoice export often carry a service date such as
``"Call out 03/11/23 site B"``. The date is lifted out into two scratch
columns so the sort stage can order rows chronologically, then written back
to the front of the description once sorting is done. Due dates are shifted
by a configured number of calendar days.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta

from invoice_doctor.settings import Settings
from invoice_doctor.stages import (
    DESC_DATE_COLUMN,
    DESC_TIMESTAMP_COLUMN,
    DESCRIPTION_COLUMN,
    DUE_DATE_COLUMN,
    StageResult,
)
from invoice_doctor.table import Table

DESCRIPTION_DATE_RE = re.compile(r"\d{2}/\d{2}/\d{2}")
DESCRIPTION_DATE_FORMAT = "%d/%m/%y"
DUE_DATE_FORMAT = "%d/%m/%Y"
NO_DATE = "N/A"
NO_TIMESTAMP = "0"
QUOTE = '"'

EXTRACT_STAGE = "description_dates"
REINSERT_STAGE = "date_reinsertion"
DUE_DATE_STAGE = "due_date_shift"


def local_midnight_timestamp(date_text: str) -> int:
    """Epoch seconds for local midnight of a dd/mm/yy date. Raises ValueError."""
    return int(datetime.strptime(date_text, DESCRIPTION_DATE_FORMAT).timestamp())


def split_description_date(description: str) -> tuple[str | None, str]:
    """Return (first dd/mm/yy match or None, description with every match removed)."""
    match = DESCRIPTION_DATE_RE.search(description)
    if match is None:
        return None, description
    return match.group(0), DESCRIPTION_DATE_RE.sub("", description)


def extract_description_dates(table: Table) -> StageResult:
    result = StageResult(EXTRACT_STAGE)
    if not table.has_heading(DESCRIPTION_COLUMN):
        return result.skip("missing_column", "Description column not found!", column=DESCRIPTION_COLUMN)

    table.add_heading(DESC_DATE_COLUMN)
    table.add_heading(DESC_TIMESTAMP_COLUMN)

    for row_num, row in enumerate(table.rows, start=1):
        date_text, description = split_description_date(row.get(DESCRIPTION_COLUMN, ""))
        if date_text is None:
            row[DESC_DATE_COLUMN] = NO_DATE
            row[DESC_TIMESTAMP_COLUMN] = NO_TIMESTAMP
            continue

        row[DESCRIPTION_COLUMN] = description
        row[DESC_DATE_COLUMN] = date_text
        result.rows_changed += 1
        try:
            row[DESC_TIMESTAMP_COLUMN] = str(local_midnight_timestamp(date_text))
        except (ValueError, OverflowError, OSError):
            row[DESC_TIMESTAMP_COLUMN] = NO_TIMESTAMP
            result.report(
                "unparsable_date",
                f"Failed to parse date: {date_text}",
                column=DESCRIPTION_COLUMN,
                row=row_num,
            )
    return result


def prefix_description(description: str, date_text: str) -> str:
    if description.startswith(QUOTE):
        return f'{QUOTE}{date_text} {description[1:]}'
    return f"{date_text} {description}"


def reinsert_description_dates(table: Table) -> StageResult:
    result = StageResult(REINSERT_STAGE)
    if not table.has_heading(DESCRIPTION_COLUMN):
        return result.skip("missing_column", "Description column not found!", column=DESCRIPTION_COLUMN)

    if table.has_heading(DESC_DATE_COLUMN):
        for row in table.rows:
            row[DESCRIPTION_COLUMN] = prefix_description(
                row.get(DESCRIPTION_COLUMN, ""),
                row.get(DESC_DATE_COLUMN, ""),
            )
            result.rows_changed += 1

    table.drop_heading(DESC_DATE_COLUMN)
    table.drop_heading(DESC_TIMESTAMP_COLUMN)
    return result


def shift_date(date_text: str, days: int) -> str:
    """Add whole calendar days to a dd/mm/yyyy date. Raises ValueError."""
    shifted = datetime.strptime(date_text.strip(), DUE_DATE_FORMAT) + timedelta(days=days)
    return shifted.strftime(DUE_DATE_FORMAT)


def shift_due_dates(table: Table, settings: Settings) -> StageResult:
    result = StageResult(DUE_DATE_STAGE)
    days = settings.due_date_additional_days
    if days == 0:
        return result.skip(
            "stage_skipped",
            "No days to add specified or value is 0. Skipping due date update.",
        )
    if not table.has_heading(DUE_DATE_COLUMN):
        return result.skip(
            "missing_column",
            "DueDate column not found in CSV. Skipping...",
            column=DUE_DATE_COLUMN,
        )

    for row_num, row in enumerate(table.rows, start=1):
        value = row.get(DUE_DATE_COLUMN, "")
        try:
            row[DUE_DATE_COLUMN] = shift_date(value, days)
        except (ValueError, OverflowError):
            result.report(
                "unparsable_date",
                f"Row {row_num}: due date {value!r} is not dd/mm/yyyy; left unchanged",
                column=DUE_DATE_COLUMN,
                row=row_num,
            )
            continue
        result.rows_changed += 1
    return result
