"""
Shared invoice-doctor issue taxonomy.

Every condition the codec, settings parser and pipeline stages report is
built here so severity stays consistent between the CLI and the JSON
run summary. None of these conditions abort a run: the affected row,
column, stage or resource degrades and processing continues.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass
from typing import Any


ISSUE_DEFINITIONS = {
    "missing_resource": {"severity": "critical"},
    "missing_column": {"severity": "warning"},
    "unknown_heading": {"severity": "warning"},
    "malformed_config_line": {"severity": "warning"},
    "unparsable_date": {"severity": "warning"},
    "stage_skipped": {"severity": "info"},
    "encoding_non_utf8": {"severity": "info"},
}

SEVERITY_ORDER = ("critical", "warning", "info")


@dataclass
class Issue:
    issue_id: str
    severity: str
    message: str
    stage: str | None = None
    column: str | None = None
    row: int | None = None
    line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def __str__(self) -> str:
        return f"[{self.severity}] {self.message}"


def build_issue(
    *,
    issue_id: str,
    message: str,
    stage: str | None = None,
    column: str | None = None,
    row: int | None = None,
    line: int | None = None,
) -> Issue:
    definition = ISSUE_DEFINITIONS[issue_id]
    return Issue(
        issue_id=issue_id,
        severity=definition["severity"],
        message=message,
        stage=stage,
        column=column,
        row=row,
        line=line,
    )


def count_by_severity(issues: list[Issue]) -> dict[str, int]:
    counts = Counter(issue.severity for issue in issues)
    return {severity: counts.get(severity, 0) for severity in SEVERITY_ORDER}


def count_by_id(issues: list[Issue]) -> dict[str, int]:
    return dict(sorted(Counter(issue.issue_id for issue in issues).items()))


def has_problems(issues: list[Issue]) -> bool:
    return any(issue.severity in {"critical", "warning"} for issue in issues)
