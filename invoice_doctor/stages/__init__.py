from __future__ import annotations

from dataclasses import dataclass, field

from invoice_doctor.issue_taxonomy import Issue, build_issue

DESCRIPTION_COLUMN = "*Description"
DUE_DATE_COLUMN = "*DueDate"
DESC_DATE_COLUMN = "DescDate"
DESC_TIMESTAMP_COLUMN = "DescDateTimeStamp"


@dataclass
class StageResult:
    name: str
    applied: bool = True
    rows_changed: int = 0
    issues: list[Issue] = field(default_factory=list)

    def report(self, issue_id: str, message: str, **context) -> Issue:
        issue = build_issue(issue_id=issue_id, message=message, stage=self.name, **context)
        self.issues.append(issue)
        return issue

    def skip(self, issue_id: str, message: str, **context) -> StageResult:
        self.applied = False
        self.report(issue_id, message, **context)
        return self
