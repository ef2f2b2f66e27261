"""In-memory table: ordered headings plus name-keyed rows."""

from __future__ import annotations

from dataclasses import dataclass, field

import pandas as pd

Row = dict[str, str]


@dataclass
class Table:
    """
    Ordered column names and the rows read from one invoice export.

    Heading order is both the CSV column order and the field order used on
    write. Rows are looked up by heading name; a row may lack some headings
    (written as empty fields) but must never hold a key that is not a heading
    once a pipeline stage has finished.
    """

    headings: list[str] = field(default_factory=list)
    rows: list[Row] = field(default_factory=list)

    def has_heading(self, name: str) -> bool:
        return name in self.headings

    def add_heading(self, name: str) -> None:
        if name not in self.headings:
            self.headings.append(name)

    def drop_heading(self, name: str) -> bool:
        """Remove a heading and its value from every row. Returns False if it was absent."""
        if name not in self.headings:
            return False
        self.headings.remove(name)
        for row in self.rows:
            row.pop(name, None)
        return True

    def row_from_tokens(self, tokens: list[str]) -> Row:
        # Extra tokens are dropped; missing tokens leave the key absent.
        return {heading: token for heading, token in zip(self.headings, tokens)}

    def values_for(self, row: Row) -> list[str]:
        return [row.get(heading, "") for heading in self.headings]

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            [self.values_for(row) for row in self.rows],
            columns=list(self.headings),
            dtype="string",
        )

    def __len__(self) -> int:
        return len(self.rows)
