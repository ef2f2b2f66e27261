from __future__ import annotations

import json
import os
import shutil
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from invoice_doctor import __version__

ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "invoice_doctor.cli"]
SAMPLE_CSV = ROOT / "sample-data" / "invoices.csv"
SAMPLE_SETTINGS = ROOT / "sample-data" / "settings.txt"


def run_cli(*args: str, cwd: Path = ROOT, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    merged_env = dict(os.environ)
    merged_env.pop("INVOICE_DOCTOR_SETTINGS", None)
    merged_env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(ROOT), merged_env.get("PYTHONPATH")]))
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        env=merged_env,
    )


class InvoiceDoctorCliTests(unittest.TestCase):
    def test_fix_writes_postfixed_copy_and_returns_partial_on_warnings(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            input_path = Path(tmpdir) / "invoices.csv"
            shutil.copy(SAMPLE_CSV, input_path)
            proc = run_cli("fix", str(input_path), "--settings", str(SAMPLE_SETTINGS))

            self.assertEqual(proc.returncode, 6, proc.stderr)
            output_path = Path(tmpdir) / "invoices_fixed.csv"
            self.assertTrue(output_path.exists())
            self.assertIn("Claim Type: Standard", output_path.read_text(encoding="utf-8"))
            self.assertIn("[warning]", proc.stderr)
            self.assertIn("All done!", proc.stderr)

    def test_fix_clean_run_returns_zero(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            input_path = Path(tmpdir) / "in.csv"
            input_path.write_text("*Description,*DueDate\nPaid 01/02/23,30/01/2024\n", encoding="utf-8")
            settings_path = Path(tmpdir) / "settings.txt"
            settings_path.write_text(
                'replacements:\n*Description:"Paid"="Settled"\nend:\n'
                "sort order:\n*Description:asc\nend:\n"
                'appendages:\n*Description:"Settled"="thanks"\nend:\n'
                "due date additional days:5\n",
                encoding="utf-8",
            )
            proc = run_cli("fix", str(input_path), "--settings", str(settings_path), "-q")

            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertEqual(proc.stderr, "")
            output = (Path(tmpdir) / "in_new.csv").read_text(encoding="utf-8")
            self.assertEqual(output, "*Description,*DueDate\n01/02/23 Settled  thanks,04/02/2024\n")

    def test_settings_default_comes_from_environment(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            input_path = Path(tmpdir) / "invoices.csv"
            shutil.copy(SAMPLE_CSV, input_path)
            output_path = Path(tmpdir) / "out" / "result.csv"
            proc = run_cli(
                "fix",
                str(input_path),
                "--output",
                str(output_path),
                "--json",
                env={"INVOICE_DOCTOR_SETTINGS": str(SAMPLE_SETTINGS)},
            )

            self.assertEqual(proc.returncode, 6, proc.stderr)
            self.assertTrue(output_path.exists())
            payload = json.loads(proc.stdout)
            self.assertEqual(payload["output_file"], str(output_path))
            self.assertEqual(payload["settings"]["new_file_name_postfix"], "_fixed")

    def test_json_summary_file_and_dry_run(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            input_path = Path(tmpdir) / "invoices.csv"
            shutil.copy(SAMPLE_CSV, input_path)
            summary_path = Path(tmpdir) / "summary.json"
            proc = run_cli(
                "fix",
                str(input_path),
                "--settings",
                str(SAMPLE_SETTINGS),
                "--json-summary",
                str(summary_path),
                "--dry-run",
                "-q",
            )

            self.assertEqual(proc.returncode, 6, proc.stderr)
            self.assertFalse((Path(tmpdir) / "invoices_fixed.csv").exists())
            summary = json.loads(summary_path.read_text(encoding="utf-8"))
            self.assertIsNone(summary["output_file"])
            self.assertEqual(summary["tool_version"], __version__)

    def test_missing_input_returns_exit_1(self):
        proc = run_cli("fix", "does-not-exist.csv", "--settings", str(SAMPLE_SETTINGS))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("doesn't appear to be valid", proc.stderr)

    def test_missing_settings_returns_exit_1(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli("fix", str(SAMPLE_CSV), cwd=Path(tmpdir))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("settings file appears to be missing", proc.stderr)

    def test_settings_init_refuses_to_overwrite(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "settings.txt"
            first = run_cli("settings", "init", "--path", str(path))
            second = run_cli("settings", "init", "--path", str(path))

            self.assertEqual(first.returncode, 0, first.stderr)
            self.assertIn("replacements:", path.read_text(encoding="utf-8"))
            self.assertEqual(second.returncode, 1)
            self.assertIn("Refusing to overwrite", second.stderr)

    def test_settings_show_prints_parsed_json(self):
        proc = run_cli("settings", "show", str(SAMPLE_SETTINGS))
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["settings"]["due_date_additional_days"], 5)
        self.assertEqual(payload["settings"]["sort_order"][1]["heading"], "DescDateTimeStamp")

    def test_version(self):
        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0)
        self.assertEqual(proc.stdout.strip(), __version__)

    def test_bad_arguments_return_exit_1(self):
        proc = run_cli("fix")
        self.assertEqual(proc.returncode, 1)


if __name__ == "__main__":
    unittest.main()
