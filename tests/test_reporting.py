import csv
import io
import json
import unittest
from datetime import datetime, timedelta, timezone

from waterops.errors import DateRangeError, RecordValidationError, UnsupportedFormatError
from waterops.reporting.export import ExportFormat, build_filename, package
from waterops.reporting.formatter import (
    LEAK_DATASET,
    USAGE_DATASET,
    OutputKind,
    ReportKind,
    format_report,
    render_csv,
)
from waterops.reporting.pipeline import generate_report, resolve_window
from waterops.schemas.api_models import ReportRequest
from waterops.schemas.records import EntityKind
from waterops.store import MemoryRecordStore

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
START = datetime(2026, 10, 11, tzinfo=timezone.utc)


class TestFormatter(unittest.TestCase):

    def setUp(self):
        self.store = MemoryRecordStore(clock=lambda: NOW)

    def test_empty_leak_analysis_has_header_and_section(self):
        text = format_report(self.store, "leak-analysis", START, NOW, OutputKind.TEXT, now=NOW)
        lines = text.splitlines()

        self.assertEqual(lines[0], "Water Utility Operations Report")
        self.assertIn("Report Type: leak-analysis", lines)
        self.assertIn("Date Range: 2026-10-11 - 2026-10-18", lines)
        self.assertEqual(lines[-2:], ["LEAK DETECTION ANALYSIS", "=" * len("LEAK DETECTION ANALYSIS")])

    def test_unknown_kind_falls_back_to_usage_csv(self):
        self.assertIs(ReportKind.parse("quarterly-bogus"), ReportKind.UNKNOWN)

        output = format_report(self.store, "quarterly-bogus", START, NOW, OutputKind.CSV, now=NOW)
        self.assertEqual(output.splitlines(), [",".join(USAGE_DATASET.header)])

    def test_csv_quoting_round_trip(self):
        notes = 'Crew said "urgent", call back, then\nclose valve'
        self.store.create(EntityKind.LEAKS, {
            "location": "Main St, 4th Ave",
            "severity": "critical",
            "detectedAt": NOW - timedelta(hours=1),
            "notes": notes,
        })

        output = format_report(self.store, "leak-analysis", START, NOW, OutputKind.CSV, now=NOW)
        rows = list(csv.reader(io.StringIO(output)))

        self.assertEqual(rows[0], list(LEAK_DATASET.header))
        self.assertEqual(rows[1][1], "Main St, 4th Ave")
        self.assertEqual(rows[1][6], notes)
        # Absent estimate and technician
        self.assertEqual(rows[1][4], "N/A")
        self.assertEqual(rows[1][5], "N/A")

    def test_render_csv_doubles_quotes(self):
        output = render_csv(["a", "b"], [['say "hi"', "plain"]])
        self.assertEqual(output, 'a,b\n"say ""hi""",plain\n')

    def test_usage_rows_respect_range(self):
        for stamp in (START - timedelta(seconds=1), START, NOW):
            self.store.create(EntityKind.USAGE, {
                "location": "Downtown District",
                "timestamp": stamp,
                "gallons": 2000000.0,
                "pressure": 80,
                "flowRate": 1500,
            })

        output = format_report(self.store, "weekly-usage", START, NOW, OutputKind.CSV, now=NOW)
        rows = list(csv.reader(io.StringIO(output)))

        self.assertEqual(len(rows), 3)
        self.assertEqual(rows[1][0], NOW.isoformat())
        self.assertEqual(rows[1][2], "2000000")
        self.assertEqual(rows[1][5], "N/A")

    def section_body(self, text, section):
        lines = text.splitlines()
        start = lines.index(section)
        self.assertEqual(lines[start + 1], "=" * len(section))
        return lines[start + 2:]

    def test_text_body_has_one_line_per_record(self):
        for hours, gallons in ((1, 1_200_000), (2, 900_000)):
            self.store.create(EntityKind.USAGE, {
                "location": "Downtown District",
                "timestamp": NOW - timedelta(hours=hours),
                "gallons": gallons,
                "pressure": 80,
                "flowRate": 1500,
            })
        for days, description in ((1, "Pump Station Inspection"), (2, "Valve Replacement")):
            self.store.create(EntityKind.MAINTENANCE, {
                "taskType": "repair",
                "location": "North Treatment Plant",
                "priority": "normal",
                "scheduledDate": NOW - timedelta(days=days),
                "assignedTechnician": "Mike Johnson",
                "description": description,
            })
        self.store.create(EntityKind.LEAKS, {
            "location": "Main St",
            "severity": "critical",
            "detectedAt": NOW - timedelta(hours=3),
            "estimatedGallonsLost": 1500,
        })
        self.store.create(EntityKind.LEAKS, {
            "location": "Pine Street Sector",
            "severity": "medium",
            "status": "investigating",
            "detectedAt": NOW - timedelta(days=1),
            "assignedTechnician": "Sarah Chen",
        })

        usage = self.section_body(format_report(self.store, "weekly-usage", START, NOW, now=NOW), "WEEKLY USAGE REPORT")
        tasks = self.section_body(format_report(self.store, "maintenance-log", START, NOW, now=NOW), "MAINTENANCE LOG")
        leaks = self.section_body(format_report(self.store, "leak-analysis", START, NOW, now=NOW), "LEAK DETECTION ANALYSIS")

        self.assertEqual(usage, [
            "2026-10-18 11:00: Downtown District - 1.20M gallons @ 80.0 PSI",
            "2026-10-18 10:00: Downtown District - 0.90M gallons @ 80.0 PSI",
        ])
        self.assertEqual(tasks, [
            "2026-10-16: Valve Replacement - pending [normal] (Mike Johnson)",
            "2026-10-17: Pump Station Inspection - pending [normal] (Mike Johnson)",
        ])
        self.assertEqual(leaks, [
            "2026-10-18: Main St - critical (active), est. loss 1500 gallons, technician unassigned",
            "2026-10-17: Pine Street Sector - medium (investigating), est. loss N/A gallons, technician Sarah Chen",
        ])

    def test_generated_time_defaults_to_snapshot_time(self):
        text = format_report(self.store, "leak-analysis", START, NOW)
        self.assertIn("Generated: 2026-10-18T12:00:00+00:00", text.splitlines())

    def test_daily_operations_text_includes_kpis(self):
        text = format_report(self.store, ReportKind.DAILY_OPERATIONS, START, NOW, now=NOW)
        self.assertIn("DAILY OPERATIONS SUMMARY", text)
        self.assertIn("Average System Pressure: N/A", text)
        self.assertIn("Active Leaks: 0", text)

    def test_inverted_range(self):
        with self.assertRaises(DateRangeError):
            format_report(self.store, "leak-analysis", NOW, START)

    def test_unsupported_output_kind(self):
        with self.assertRaises(UnsupportedFormatError):
            format_report(self.store, "leak-analysis", START, NOW, "xlsx")


class TestExport(unittest.TestCase):

    def test_csv_package(self):
        export = package("a,b\n", "csv", "daily-operations", START, NOW)
        self.assertEqual(export.content_type, "text/csv; charset=utf-8")
        self.assertEqual(export.filename, "daily-operations_2026-10-11_2026-10-18.csv")
        self.assertEqual(export.content_disposition, 'attachment; filename="daily-operations_2026-10-11_2026-10-18.csv"')

    def test_pdf_package_is_text(self):
        export = package("REPORT\n", ExportFormat.PDF, "leak-analysis", START, NOW)
        self.assertEqual(export.content_type, "application/pdf")
        self.assertEqual(export.content, b"REPORT\n")
        self.assertTrue(export.filename.endswith(".pdf"))

    def test_json_package_indented(self):
        export = package([{"id": 1}], "json", "usage", START, NOW)
        self.assertEqual(export.content_type, "application/json; charset=utf-8")
        self.assertEqual(export.content.decode("utf-8"), '[\n  {\n    "id": 1\n  }\n]')

    def test_unsupported_format(self):
        with self.assertRaises(UnsupportedFormatError) as ctx:
            package("x", "xlsx", "usage", START, NOW)
        self.assertEqual(ctx.exception.status_code, 400)

    def test_filename_sanitized(self):
        self.assertEqual(build_filename("../etc/passwd", "csv", START, NOW), "_etc_passwd_2026-10-11_2026-10-18.csv")


class TestPipeline(unittest.TestCase):

    def setUp(self):
        self.store = MemoryRecordStore(clock=lambda: NOW)
        self.store.create(EntityKind.ALERTS, {
            "type": "pressure",
            "severity": "critical",
            "location": "Pine Street Station 7",
            "message": "High Pressure Detected",
            "timestamp": NOW - timedelta(minutes=15),
        })

    def test_default_window_is_seven_days(self):
        start, end = resolve_window(None, None, NOW)
        self.assertEqual(end, NOW)
        self.assertEqual(start, NOW - timedelta(days=7))

    def test_date_only_end_covers_the_day(self):
        start, end = resolve_window("2026-10-01", "2026-10-01", NOW)
        self.assertEqual(start, datetime(2026, 10, 1, tzinfo=timezone.utc))
        self.assertEqual(end.date(), start.date())
        self.assertGreater(end, start)

    def test_json_export_contains_records(self):
        request = ReportRequest(reportType="alerts", format="json", startDate="2026-10-18", endDate="2026-10-18")
        export = generate_report(self.store, request, now=NOW, requested_by="john.analyst")

        rows = json.loads(export.content)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["message"], "High Pressure Detected")
        self.assertIn("isRead", rows[0])
        self.assertEqual(export.filename, "alerts_2026-10-18_2026-10-18.json")

    def test_csv_export(self):
        request = ReportRequest(reportType="alerts", format="csv")
        export = generate_report(self.store, request, now=NOW)

        rows = list(csv.reader(io.StringIO(export.content.decode("utf-8"))))
        self.assertEqual(rows[1][-1], "Unread")

    def test_window_defaults_to_snapshot_time(self):
        export = generate_report(self.store, ReportRequest(reportType="alerts", format="json"))
        self.assertEqual(export.filename, "alerts_2026-10-11_2026-10-18.json")
        self.assertEqual(len(json.loads(export.content)), 1)

    def test_non_string_dates_rejected(self):
        request = ReportRequest(reportType="alerts", format="csv", startDate=20261001)
        with self.assertRaises(DateRangeError):
            generate_report(self.store, request, now=NOW)

    def test_missing_type_or_format(self):
        with self.assertRaises(RecordValidationError):
            generate_report(self.store, ReportRequest(format="csv"), now=NOW)
        with self.assertRaises(RecordValidationError):
            generate_report(self.store, ReportRequest(reportType="alerts"), now=NOW)

    def test_inverted_range(self):
        request = ReportRequest(reportType="alerts", format="csv", startDate="2026-10-18", endDate="2026-10-01")
        with self.assertRaises(DateRangeError):
            generate_report(self.store, request, now=NOW)


if __name__ == '__main__':
    unittest.main()
