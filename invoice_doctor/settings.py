"""
Settings parser for invoice-doctor.

The settings file is a line-oriented text format with three optional
sections and two scalar lines:

    replacements:
    *Description:"ACME Ltd"="Acme Limited", "Svc"="Service"
    end:

    sort order:
    *ContactName: asc
    DescDateTimeStamp: desc
    end:

    appendages:
    *ItemCode:"CLM"="Claim Type: Standard"
    end:

    due date additional days:14
    new file name postfix:_new

Lines outside a recognised section are ignored. Scalar lines are found by
substring anywhere in the file and never count as section content, except
that a section line carrying "..."="..." pairs always belongs to its section.
Malformed lines are reported and skipped; parsing never stops early.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from invoice_doctor.issue_taxonomy import Issue, build_issue

SECTION_REPLACEMENTS = "replacements:"
SECTION_SORT_ORDER = "sort order:"
SECTION_APPENDAGES = "appendages:"
SECTION_END = "end:"
SECTION_MARKERS = (SECTION_REPLACEMENTS, SECTION_SORT_ORDER, SECTION_APPENDAGES)

DUE_DATE_DAYS_KEY = "due date additional days:"
POSTFIX_KEY = "new file name postfix:"

DEFAULT_DUE_DATE_ADDITIONAL_DAYS = 0
DEFAULT_NEW_FILE_NAME_POSTFIX = "_new"
DEFAULT_SETTINGS_FILENAME = "settings.txt"

REPLACEMENT_PAIR_RE = re.compile(r'"([^"]*)"\s*=\s*"([^"]*)"')
APPENDAGE_PAIR_RE = re.compile(r'"([^"]+)"\s*=\s*"([^"]+)"')
APPENDAGE_LINE_RE = re.compile(r"([^:]+):(.+)")
LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


@dataclass
class SortKey:
    heading: str
    direction: str

    @property
    def ascending(self) -> bool:
        # Anything other than exactly "asc" sorts descending.
        return self.direction == "asc"


@dataclass
class Settings:
    replacements: dict[str, dict[str, str]] = field(default_factory=dict)
    sort_order: list[SortKey] = field(default_factory=list)
    appendages: dict[str, list[tuple[str, str]]] = field(default_factory=dict)
    due_date_additional_days: int = DEFAULT_DUE_DATE_ADDITIONAL_DAYS
    new_file_name_postfix: str = DEFAULT_NEW_FILE_NAME_POSTFIX

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["appendages"] = {
            column: [list(rule) for rule in rules] for column, rules in self.appendages.items()
        }
        return payload


def _malformed(issues: list[Issue], line_no: int, message: str) -> None:
    issues.append(build_issue(
        issue_id="malformed_config_line",
        message=f"settings line {line_no}: {message}",
        line=line_no,
    ))


def _parse_replacement_line(settings: Settings, line: str, line_no: int, issues: list[Issue]) -> None:
    heading, sep, rest = line.partition(":")
    if not sep:
        _malformed(issues, line_no, f"expected '<heading>:<pairs>' in replacements, got {line!r}")
        return

    pairs = REPLACEMENT_PAIR_RE.findall(rest)
    if not pairs:
        _malformed(issues, line_no, f"no \"from\"=\"to\" pairs found for heading '{heading}'")
        return

    column_map = settings.replacements.setdefault(heading, {})
    for source, target in pairs:
        if not source:
            _malformed(issues, line_no, f"empty search text in replacement for heading '{heading}'")
            continue
        column_map[source] = target
    if not column_map:
        del settings.replacements[heading]


def _parse_sort_line(settings: Settings, line: str, line_no: int, issues: list[Issue]) -> None:
    heading, sep, direction = line.partition(":")
    if not sep:
        _malformed(issues, line_no, f"expected '<heading>:<asc|desc>' in sort order, got {line!r}")
        return
    settings.sort_order.append(SortKey(heading.strip(), direction.strip()))


def _parse_appendage_line(settings: Settings, line: str, line_no: int, issues: list[Issue]) -> None:
    match = APPENDAGE_LINE_RE.fullmatch(line)
    if match is None:
        _malformed(issues, line_no, f"invalid appendages line format: {line!r}")
        return

    column, rules = match.group(1), match.group(2)
    pairs = APPENDAGE_PAIR_RE.findall(rules)
    if not pairs:
        _malformed(issues, line_no, f"no \"trigger\"=\"text\" pairs found for column '{column}'")
        return
    settings.appendages.setdefault(column, []).extend(pairs)


SECTION_PARSERS = {
    SECTION_REPLACEMENTS: _parse_replacement_line,
    SECTION_SORT_ORDER: _parse_sort_line,
    SECTION_APPENDAGES: _parse_appendage_line,
}


def _scalar_value(line: str) -> str:
    return line.partition(":")[2]


def _parse_days(value: str, line_no: int, issues: list[Issue]) -> int:
    match = LEADING_INT_RE.match(value)
    if match is None:
        _malformed(issues, line_no, f"due date additional days must be a whole number, got {value.strip()!r}")
        return DEFAULT_DUE_DATE_ADDITIONAL_DAYS
    return int(match.group(1))


def parse_settings(text: str, issues: list[Issue] | None = None) -> Settings:
    if issues is None:
        issues = []
    settings = Settings()
    section: str | None = None
    days_seen = False
    postfix_seen = False

    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.rstrip("\r")

        is_pair_line = section is not None and REPLACEMENT_PAIR_RE.search(line) is not None

        if DUE_DATE_DAYS_KEY in line and not is_pair_line:
            if not days_seen:
                settings.due_date_additional_days = _parse_days(_scalar_value(line), line_no, issues)
                days_seen = True
            continue
        if POSTFIX_KEY in line and not is_pair_line:
            if not postfix_seen:
                settings.new_file_name_postfix = _scalar_value(line).strip()
                postfix_seen = True
            continue

        marker = line.strip()
        if not marker:
            continue
        if marker in SECTION_MARKERS:
            section = marker
            continue
        if section is None:
            continue
        if marker == SECTION_END:
            section = None
            continue

        SECTION_PARSERS[section](settings, line, line_no, issues)

    return settings


def read_settings(file_path: str | Path, issues: list[Issue] | None = None) -> Settings:
    """Parse a settings file. An unreadable file yields default settings plus an issue."""
    if issues is None:
        issues = []
    path = Path(file_path)
    try:
        text = path.read_text(encoding="utf-8-sig", errors="replace")
    except OSError as exc:
        issues.append(build_issue(
            issue_id="missing_resource",
            message=f"Unable to open settings file: {path} ({exc.strerror or exc})",
        ))
        return Settings()
    return parse_settings(text, issues)


def render_template() -> str:
    return """# invoice-doctor settings
# Lines outside the sections below are ignored.

# Literal text swaps per column, applied left to right.
replacements:
*Description:"Svc"="Service", "Mnt"="Maintenance"
end:

# Most significant key first. Anything other than asc sorts descending.
sort order:
*ContactName: asc
DescDateTimeStamp: asc
end:

# Append text to a cell when it contains the trigger.
# Cells already containing "Claim Type" are left alone.
appendages:
*ItemCode:"CLM"="Claim Type: Standard"
end:

due date additional days:0
new file name postfix:_new
"""
