from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

from invoice_doctor import __version__ as TOOL_VERSION
from invoice_doctor.issue_taxonomy import Issue, has_problems
from invoice_doctor.pipeline import execute_run
from invoice_doctor.settings import DEFAULT_SETTINGS_FILENAME, read_settings, render_template
from invoice_doctor.summary import build_contract, build_run_summary_payload

SETTINGS_ENV_VAR = "INVOICE_DOCTOR_SETTINGS"

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_WRITE_FAILED = 2
EXIT_PARTIAL = 6


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class InvoiceDoctorArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def write_text(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(payload, encoding="utf-8")


def default_settings_path() -> Path:
    return Path(os.environ.get(SETTINGS_ENV_VAR) or DEFAULT_SETTINGS_FILENAME)


def resolve_settings_path(raw: str | None) -> Path:
    return Path(raw) if raw else default_settings_path()


def emit_issues(issues: list[Issue], *, quiet: bool = False) -> None:
    for issue in issues:
        emit_human(str(issue), quiet=quiet)


def render_fix_report(result: dict[str, Any], input_path: Path) -> str:
    width = 60
    table = result["table"]
    lines = [
        "",
        "═" * width,
        "  Invoice Doctor  ·  Fix Report",
        "═" * width,
        f"  Input file   : {input_path.name}",
        f"  Output file  : {result['output_path'].name}{'  (dry run, not written)' if result['dry_run'] else ''}",
        f"  Encoding     : {result['detected_encoding']}",
        "─" * width,
        f"  Lines in     : {result['physical_lines']}  (incl. column header row)",
        f"  Records      : {result['logical_records']}",
        f"  Rows out     : {len(table)}",
        f"  Columns out  : {len(table.headings)}",
        "─" * width,
        "  STAGES:",
    ]
    for stage in result["stages"]:
        state = "applied" if stage.applied else "skipped"
        lines.append(f"    · {stage.name:<22} {state:<8} rows changed: {stage.rows_changed}")
    lines.extend(["═" * width, ""])
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = InvoiceDoctorArgumentParser(
        prog="invoice-doctor",
        description="Settings-driven cleanup for invoice CSV exports.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    fix = subparsers.add_parser("fix", help="Apply the settings file to an invoice CSV and write a corrected copy.")
    fix.add_argument("input", help="Input CSV path")
    fix.add_argument(
        "--settings",
        help=f"Settings file path (default: ${SETTINGS_ENV_VAR} or ./{DEFAULT_SETTINGS_FILENAME})",
    )
    fix.add_argument("--output", help="Explicit output path (default: <input_stem><postfix><suffix> next to input)")
    fix.add_argument("--json-summary", dest="json_summary", help="Write a structured JSON run summary to this path")
    fix.add_argument("--json", action="store_true", help="Write the JSON run summary to stdout")
    fix.add_argument("--dry-run", action="store_true", help="Run the pipeline without writing the output CSV")
    fix.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")

    settings = subparsers.add_parser("settings", help="Generate or inspect a settings file.")
    settings_subparsers = settings.add_subparsers(dest="settings_command", required=True)
    settings_init = settings_subparsers.add_parser("init", help="Write a starter settings file.")
    settings_init.add_argument("--path", default=DEFAULT_SETTINGS_FILENAME, help="Settings output path")
    settings_show = settings_subparsers.add_parser("show", help="Print the parsed settings as JSON.")
    settings_show.add_argument("path", nargs="?", default=None, help="Settings file path")

    subparsers.add_parser("version", help="Print the tool version.")
    return parser


def run_fix(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    if not input_path.is_file():
        eprint(f"Oh dear, that file doesn't appear to be valid: {input_path}")
        return EXIT_COMMAND_ERROR

    settings_path = resolve_settings_path(args.settings)
    if not settings_path.is_file():
        eprint(f"Oh dear, the settings file appears to be missing: {settings_path}")
        return EXIT_COMMAND_ERROR

    result = execute_run(
        input_path,
        settings_path,
        Path(args.output) if args.output else None,
        dry_run=args.dry_run,
    )
    payload = build_run_summary_payload(result, input_path=input_path)

    if args.json_summary:
        write_text(Path(args.json_summary), json_dumps(payload))
    if args.json:
        print(json_dumps(payload))
    else:
        emit_issues(result["issues"], quiet=args.quiet)
        emit_human(render_fix_report(result, input_path).rstrip(), quiet=args.quiet)
        if result["written"]:
            emit_human(f"All done! Your new file is {result['output_path']}", quiet=args.quiet)

    if not args.dry_run and not result["written"]:
        return EXIT_WRITE_FAILED
    if has_problems(result["issues"]):
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def run_settings_init(args: argparse.Namespace) -> int:
    settings_path = Path(args.path)
    if settings_path.exists():
        eprint(f"Refusing to overwrite existing settings: {settings_path}")
        return EXIT_COMMAND_ERROR
    write_text(settings_path, render_template())
    eprint(f"Settings written: {settings_path}")
    return EXIT_SUCCESS


def run_settings_show(args: argparse.Namespace) -> int:
    settings_path = resolve_settings_path(args.path)
    if not settings_path.is_file():
        eprint(f"Settings file not found: {settings_path}")
        return EXIT_COMMAND_ERROR
    issues: list[Issue] = []
    settings = read_settings(settings_path, issues)
    emit_issues(issues)
    contract = build_contract("invoice_doctor.settings")
    print(json_dumps({
        "contract": contract,
        "settings_file": str(settings_path),
        "settings": settings.to_dict(),
        "issues": [issue.to_dict() for issue in issues],
    }))
    return EXIT_PARTIAL if has_problems(issues) else EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "fix":
            return run_fix(args)
        if args.command == "settings":
            if args.settings_command == "init":
                return run_settings_init(args)
            if args.settings_command == "show":
                return run_settings_show(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
