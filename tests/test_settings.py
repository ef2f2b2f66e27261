from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from invoice_doctor.settings import (
    DEFAULT_NEW_FILE_NAME_POSTFIX,
    Settings,
    SortKey,
    parse_settings,
    read_settings,
    render_template,
)

SAMPLE = """Settings for the March invoice run

replacements:
*Description:"Svc"="Service", "Mnt"="Maintenance"
*ContactName:"Acme"="Acme Ltd"
end:

sort order:
  *ContactName : asc
DescDateTimeStamp:desc
end:

appendages:
*ItemCode:"CLM"="Claim Type: Standard" "GEN"="General"
end:

due date additional days:14
new file name postfix: _fixed
"""


class ParseSettingsTests(unittest.TestCase):
    def test_sections_and_scalars_are_parsed(self):
        issues = []
        settings = parse_settings(SAMPLE, issues)

        self.assertEqual(issues, [])
        self.assertEqual(
            settings.replacements,
            {
                "*Description": {"Svc": "Service", "Mnt": "Maintenance"},
                "*ContactName": {"Acme": "Acme Ltd"},
            },
        )
        self.assertEqual(
            settings.sort_order,
            [SortKey("*ContactName", "asc"), SortKey("DescDateTimeStamp", "desc")],
        )
        self.assertEqual(
            settings.appendages,
            {"*ItemCode": [("CLM", "Claim Type: Standard"), ("GEN", "General")]},
        )
        self.assertEqual(settings.due_date_additional_days, 14)
        self.assertEqual(settings.new_file_name_postfix, "_fixed")

    def test_replacement_pairs_keep_listed_order(self):
        settings = parse_settings('replacements:\ncol:"b"="1","a"="2","c"="3"\nend:\n')
        self.assertEqual(list(settings.replacements["col"]), ["b", "a", "c"])

    def test_missing_sections_fall_back_to_defaults(self):
        settings = parse_settings("nothing to see here\n")
        self.assertEqual(settings, Settings())
        self.assertEqual(settings.due_date_additional_days, 0)
        self.assertEqual(settings.new_file_name_postfix, DEFAULT_NEW_FILE_NAME_POSTFIX)

    def test_lines_before_a_section_are_ignored(self):
        settings = parse_settings('*Description:"x"="y"\nreplacements:\nend:\n')
        self.assertEqual(settings.replacements, {})

    def test_malformed_lines_are_reported_and_skipped(self):
        issues = []
        settings = parse_settings(
            "replacements:\n"
            "no colon here\n"
            "*Description:not a pair\n"
            '*Description:""="empty"\n'
            '*Description:"ok"="fine"\n'
            "end:\n"
            "sort order:\n"
            "just a heading\n"
            "*ContactName:asc\n"
            "end:\n"
            "appendages:\n"
            ":missing column\n"
            '*ItemCode:"x"=""\n'
            "end:\n",
            issues,
        )

        self.assertEqual(settings.replacements, {"*Description": {"ok": "fine"}})
        self.assertEqual(settings.sort_order, [SortKey("*ContactName", "asc")])
        self.assertEqual(settings.appendages, {})
        self.assertEqual(len(issues), 6)
        self.assertTrue(all(issue.issue_id == "malformed_config_line" for issue in issues))
        self.assertEqual(issues[0].line, 2)

    def test_new_section_marker_closes_open_section(self):
        settings = parse_settings(
            'replacements:\n*Description:"a"="b"\nsort order:\n*DueDate:asc\nend:\n'
        )
        self.assertEqual(settings.replacements, {"*Description": {"a": "b"}})
        self.assertEqual(settings.sort_order, [SortKey("*DueDate", "asc")])

    def test_scalars_are_found_inside_sections_without_polluting_them(self):
        settings = parse_settings("sort order:\ndue date additional days: 7\nend:\n")
        self.assertEqual(settings.sort_order, [])
        self.assertEqual(settings.due_date_additional_days, 7)

    def test_pair_lines_mentioning_a_scalar_key_stay_in_their_section(self):
        settings = parse_settings(
            "replacements:\n"
            '*Description:"due date additional days: 30"="Net 30"\n'
            "end:\n"
            "appendages:\n"
            '*Reference:"X"="new file name postfix: none"\n'
            "end:\n"
            "due date additional days:4\n"
        )
        self.assertEqual(
            settings.replacements,
            {"*Description": {"due date additional days: 30": "Net 30"}},
        )
        self.assertEqual(settings.appendages, {"*Reference": [("X", "new file name postfix: none")]})
        self.assertEqual(settings.due_date_additional_days, 4)
        self.assertEqual(settings.new_file_name_postfix, "_new")

    def test_first_scalar_occurrence_wins(self):
        settings = parse_settings("due date additional days:3\ndue date additional days:9\n")
        self.assertEqual(settings.due_date_additional_days, 3)

    def test_unparsable_day_count_defaults_to_zero(self):
        issues = []
        settings = parse_settings("due date additional days: soon\n", issues)
        self.assertEqual(settings.due_date_additional_days, 0)
        self.assertEqual(issues[0].issue_id, "malformed_config_line")

    def test_negative_day_count_is_allowed(self):
        settings = parse_settings("due date additional days:-2\n")
        self.assertEqual(settings.due_date_additional_days, -2)

    def test_repeated_heading_lines_merge(self):
        settings = parse_settings(
            'replacements:\ncol:"a"="1"\ncol:"b"="2","a"="3"\nend:\n'
            'appendages:\ncol:"x"="X"\ncol:"y"="Y"\nend:\n'
        )
        self.assertEqual(settings.replacements, {"col": {"a": "3", "b": "2"}})
        self.assertEqual(settings.appendages, {"col": [("x", "X"), ("y", "Y")]})

    def test_sort_key_direction(self):
        self.assertTrue(SortKey("a", "asc").ascending)
        self.assertFalse(SortKey("a", "desc").ascending)
        self.assertFalse(SortKey("a", "ASC").ascending)
        self.assertFalse(SortKey("a", "ascending").ascending)


class ReadSettingsTests(unittest.TestCase):
    def test_missing_file_yields_defaults_and_issue(self):
        issues = []
        with tempfile.TemporaryDirectory() as tmpdir:
            settings = read_settings(Path(tmpdir) / "settings.txt", issues)

        self.assertEqual(settings, Settings())
        self.assertEqual(issues[0].issue_id, "missing_resource")
        self.assertEqual(issues[0].severity, "critical")

    def test_template_parses_cleanly(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "settings.txt"
            path.write_text(render_template(), encoding="utf-8")
            issues = []
            settings = read_settings(path, issues)

        self.assertEqual(issues, [])
        self.assertIn("*Description", settings.replacements)
        self.assertEqual(settings.sort_order[0], SortKey("*ContactName", "asc"))
        self.assertEqual(settings.appendages["*ItemCode"], [("CLM", "Claim Type: Standard")])
        self.assertEqual(settings.new_file_name_postfix, "_new")

    def test_to_dict_is_json_shaped(self):
        settings = parse_settings(SAMPLE)
        payload = settings.to_dict()
        self.assertEqual(payload["sort_order"][0], {"heading": "*ContactName", "direction": "asc"})
        self.assertEqual(payload["appendages"]["*ItemCode"][0], ["CLM", "Claim Type: Standard"])


if __name__ == "__main__":
    unittest.main()
