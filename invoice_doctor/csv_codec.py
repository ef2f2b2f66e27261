"""
csv_codec.py: Quote-aware reader and writer for invoice exports.

Public API:
    table = read_table("path/to/invoices.csv")
    ok    = write_table(table, "path/to/invoices_new.csv")

load_table() returns the richer result dict used by the pipeline:
    table: Table (always present, possibly empty)
    ok: False when the input could not be read
    detected_encoding: encoding used to decode the file, or None
    encoding_info: full dict: detected, confidence, is_utf8
    physical_lines: line count after newline normalisation
    logical_records: data records after joining multi-line quoted fields
    issues: list of Issue

Format notes:
    - Quote characters are kept in field values. A comma between quotes is
      data, not a separator. Doubled quotes ("") are not treated specially.
    - Fields are written back exactly as stored. A comma that ends up in an
      unquoted value will be read back as a separator.
    - Output is always UTF-8 without a BOM, whatever the input encoding.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import chardet

from invoice_doctor.issue_taxonomy import Issue, build_issue
from invoice_doctor.table import Table

QUOTE = '"'
DELIMITER = ","
LINE_TERMINATOR = "\n"
OUTPUT_ENCODING = "utf-8"


# ══════════════════════════════════════════════════════════════════════════════
# ENCODING DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding_info(raw: bytes) -> dict:
    """Detect encoding from raw bytes. Returns dict with: detected, confidence, is_utf8."""
    result = chardet.detect(raw)
    detected = result.get("encoding") or "unknown"
    confidence = round(result.get("confidence") or 0.0, 2)
    is_utf8 = detected.upper().replace("-", "").replace("SIG", "") in ("UTF8", "ASCII")
    return {
        "detected": detected,
        "confidence": confidence,
        "is_utf8": is_utf8,
    }


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line:
      1. Try UTF-8
      2. Try preferred_encoding (chardet result)
      3. Try latin-1
      4. CP1252 with replace (never crashes)

    Also strips embedded null bytes so they never reach rows or output.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            if not enc or enc == "unknown":
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines)


def _physical_lines(text: str) -> list[str]:
    if text.startswith("\ufeff"):
        text = text[1:]
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = text.split("\n")
    # A trailing newline does not start another line.
    if lines and lines[-1] == "":
        lines.pop()
    return lines


# ══════════════════════════════════════════════════════════════════════════════
# TOKENIZING
# ══════════════════════════════════════════════════════════════════════════════

def tokenize_line(line: str) -> list[str]:
    """
    Split one logical CSV record into raw field strings.

    A single in-quotes flag flips on every double quote. Commas seen while the
    flag is set stay in the field; commas outside quotes end it. The quote
    characters themselves are kept. The last field is always emitted, so an
    empty line yields one empty field.
    """
    tokens: list[str] = []
    token: list[str] = []
    inside_quotes = False

    for char in line:
        if char == QUOTE:
            inside_quotes = not inside_quotes
        elif char == DELIMITER and not inside_quotes:
            tokens.append("".join(token))
            token = []
            continue
        token.append(char)

    tokens.append("".join(token))
    return tokens


def iter_logical_records(lines: list[str]):
    """
    Yield logical records built from physical data lines.

    Blank lines between records are skipped. A line with an odd number of
    quotes opens a field that spans a line break, so following lines are
    joined with a newline until the quote count is even or input runs out.
    """
    index = 0
    total = len(lines)
    while index < total:
        line = lines[index]
        index += 1
        if not line:
            continue
        quote_count = line.count(QUOTE)
        while quote_count % 2 != 0 and index < total:
            next_line = lines[index]
            index += 1
            line += "\n" + next_line
            quote_count += next_line.count(QUOTE)
        yield line


def parse_text(text: str) -> tuple[Table, int, int]:
    """Build a Table from decoded CSV text. Returns (table, physical_lines, logical_records)."""
    lines = _physical_lines(text)
    if not lines:
        return Table(), 0, 0

    table = Table(headings=tokenize_line(lines[0]))
    records = 0
    for record in iter_logical_records(lines[1:]):
        table.rows.append(table.row_from_tokens(tokenize_line(record)))
        records += 1
    return table, len(lines), records


# ══════════════════════════════════════════════════════════════════════════════
# READ / WRITE
# ══════════════════════════════════════════════════════════════════════════════

def load_table(file_path: str | Path, issues: list[Issue] | None = None) -> dict:
    """Read an invoice export. Never raises for unreadable input; see module docstring."""
    if issues is None:
        issues = []
    path = Path(file_path)
    result = {
        "table": Table(),
        "ok": False,
        "detected_encoding": None,
        "encoding_info": None,
        "physical_lines": 0,
        "logical_records": 0,
        "issues": issues,
    }

    try:
        raw = path.read_bytes()
    except OSError as exc:
        issues.append(build_issue(
            issue_id="missing_resource",
            message=f"Unable to open file: {path} ({exc.strerror or exc})",
        ))
        return result

    if not raw:
        issues.append(build_issue(
            issue_id="missing_resource",
            message=f"Input file is empty: {path}",
        ))
        result["ok"] = True
        return result

    encoding_info = _detect_encoding_info(raw)
    text = _read_text_safely(raw, encoding_info["detected"])
    if not encoding_info["is_utf8"] and encoding_info["detected"] != "unknown":
        issues.append(build_issue(
            issue_id="encoding_non_utf8",
            message=(
                f"Input decoded as {encoding_info['detected']} "
                f"(confidence {encoding_info['confidence']})"
            ),
        ))

    table, physical_lines, logical_records = parse_text(text)
    result.update(
        table=table,
        ok=True,
        detected_encoding=encoding_info["detected"],
        encoding_info=encoding_info,
        physical_lines=physical_lines,
        logical_records=logical_records,
    )
    return result


def read_table(file_path: str | Path, issues: list[Issue] | None = None) -> Table:
    return load_table(file_path, issues)["table"]


def render_table(table: Table) -> str:
    lines = [DELIMITER.join(table.headings)]
    for row in table.rows:
        lines.append(DELIMITER.join(table.values_for(row)))
    return LINE_TERMINATOR.join(lines) + LINE_TERMINATOR


def write_table(table: Table, file_path: str | Path, issues: list[Issue] | None = None) -> bool:
    """
    Write the table as UTF-8 without re-quoting. Returns False (and reports a
    missing_resource issue) when the output cannot be written.
    """
    if issues is None:
        issues = []
    output_path = Path(file_path)
    payload = render_table(table)

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{output_path.stem}.",
            suffix=output_path.suffix,
            dir=str(output_path.parent),
        )
    except OSError as exc:
        issues.append(build_issue(
            issue_id="missing_resource",
            message=f"Unable to open file: {output_path} ({exc.strerror or exc})",
        ))
        return False

    temp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding=OUTPUT_ENCODING, newline="") as handle:
            handle.write(payload)
        os.replace(temp_path, output_path)
    except OSError as exc:
        issues.append(build_issue(
            issue_id="missing_resource",
            message=f"Unable to write file: {output_path} ({exc.strerror or exc})",
        ))
        return False
    finally:
        if temp_path.exists():
            temp_path.unlink()
    return True
