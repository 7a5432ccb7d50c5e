"""
Report Formatter.

Renders stored records as a plain-text report or a CSV table for a report
kind and date range. Report kinds are a closed enum; any string we do not
recognize becomes ``ReportKind.UNKNOWN``, which renders the default water
usage export instead of failing.
"""

import csv
import io
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence, Union

from waterops.errors import UnsupportedFormatError
from waterops.schemas.records import Alert, EntityKind, Leak, MaintenanceTask, RecordModel, UsageReading
from waterops.store.base import RecordFilter, SnapshotSource, as_snapshot
from waterops.transform.kpis import compute_kpis, kpi_summary_lines
from waterops.utils.dates import check_range

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Water Utility Operations Report"
MISSING = "N/A"


class ReportKind(Enum):
    DAILY_OPERATIONS = "daily-operations"
    WEEKLY_USAGE = "weekly-usage"
    MAINTENANCE_LOG = "maintenance-log"
    LEAK_ANALYSIS = "leak-analysis"
    # Dataset names accepted as report types by the CSV export
    USAGE = "usage"
    LEAKS = "leaks"
    MAINTENANCE = "maintenance"
    ALERTS = "alerts"
    # Anything else: falls back to the usage export
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "ReportKind":
        """Never raises; unrecognized values map to UNKNOWN."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN


class OutputKind(str, Enum):
    TEXT = "text"
    CSV = "csv"

    @classmethod
    def parse(cls, value: Any) -> "OutputKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedFormatError(f"Unsupported output kind: {value!r}")


# --- Cell & line helpers ---

def _number(value: Optional[float]) -> str:
    if value is None:
        return MISSING
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _stamp(value: datetime) -> str:
    return value.isoformat()


def _usage_row(r: UsageReading) -> List[str]:
    return [_stamp(r.timestamp), r.location, _number(r.gallons), _number(r.pressure),
            _number(r.flow_rate), _number(r.temperature)]


def _leak_row(leak: Leak) -> List[str]:
    return [_stamp(leak.detected_at), leak.location, leak.severity, leak.status,
            _number(leak.estimated_gallons_lost), leak.assigned_technician or MISSING, leak.notes or ""]


def _maintenance_row(m: MaintenanceTask) -> List[str]:
    return [_stamp(m.scheduled_date), m.task_type, m.location, m.priority, m.status,
            m.assigned_technician, m.description, _number(m.cost)]


def _alert_row(a: Alert) -> List[str]:
    return [_stamp(a.timestamp), a.type, a.severity, a.location, a.message,
            "Read" if a.is_read else "Unread"]


def _usage_line(r: UsageReading) -> str:
    return (f"{r.timestamp:%Y-%m-%d %H:%M}: {r.location} - {r.gallons / 1_000_000:.2f}M gallons "
            f"@ {r.pressure:.1f} PSI")


def _leak_line(leak: Leak) -> str:
    loss = _number(leak.estimated_gallons_lost)
    return (f"{leak.detected_at:%Y-%m-%d}: {leak.location} - {leak.severity} ({leak.status}), "
            f"est. loss {loss} gallons, technician {leak.assigned_technician or 'unassigned'}")


def _maintenance_line(m: MaintenanceTask) -> str:
    return (f"{m.scheduled_date:%Y-%m-%d}: {m.description} - {m.status} "
            f"[{m.priority}] ({m.assigned_technician})")


def _alert_line(a: Alert) -> str:
    state = "read" if a.is_read else "unread"
    return f"{a.timestamp:%Y-%m-%d %H:%M}: [{a.severity}] {a.location} - {a.message} ({state})"


class Dataset(NamedTuple):
    kind: EntityKind
    header: Sequence[str]
    row: Callable[[Any], List[str]]
    line: Callable[[Any], str]


USAGE_DATASET = Dataset(
    EntityKind.USAGE,
    ["Date", "Location", "Gallons", "Pressure (PSI)", "Flow Rate (GPM)", "Temperature (F)"],
    _usage_row,
    _usage_line,
)
LEAK_DATASET = Dataset(
    EntityKind.LEAKS,
    ["Detected Date", "Location", "Severity", "Status", "Estimated Loss (Gallons)", "Technician", "Notes"],
    _leak_row,
    _leak_line,
)
MAINTENANCE_DATASET = Dataset(
    EntityKind.MAINTENANCE,
    ["Scheduled Date", "Task Type", "Location", "Priority", "Status", "Technician", "Description", "Cost"],
    _maintenance_row,
    _maintenance_line,
)
ALERT_DATASET = Dataset(
    EntityKind.ALERTS,
    ["Timestamp", "Type", "Severity", "Location", "Message", "Status"],
    _alert_row,
    _alert_line,
)

REPORT_DATASETS: Dict[ReportKind, Dataset] = {
    ReportKind.DAILY_OPERATIONS: USAGE_DATASET,
    ReportKind.WEEKLY_USAGE: USAGE_DATASET,
    ReportKind.USAGE: USAGE_DATASET,
    ReportKind.UNKNOWN: USAGE_DATASET,
    ReportKind.LEAK_ANALYSIS: LEAK_DATASET,
    ReportKind.LEAKS: LEAK_DATASET,
    ReportKind.MAINTENANCE_LOG: MAINTENANCE_DATASET,
    ReportKind.MAINTENANCE: MAINTENANCE_DATASET,
    ReportKind.ALERTS: ALERT_DATASET,
}

SECTION_TITLES: Dict[ReportKind, str] = {
    ReportKind.DAILY_OPERATIONS: "DAILY OPERATIONS SUMMARY",
    ReportKind.WEEKLY_USAGE: "WEEKLY USAGE REPORT",
    ReportKind.USAGE: "WATER USAGE REPORT",
    ReportKind.UNKNOWN: "WATER USAGE REPORT",
    ReportKind.LEAK_ANALYSIS: "LEAK DETECTION ANALYSIS",
    ReportKind.LEAKS: "LEAK DETECTION ANALYSIS",
    ReportKind.MAINTENANCE_LOG: "MAINTENANCE LOG",
    ReportKind.MAINTENANCE: "MAINTENANCE LOG",
    ReportKind.ALERTS: "ALERT HISTORY",
}


def dataset_for(report_kind: Union[str, ReportKind]) -> Dataset:
    return REPORT_DATASETS[ReportKind.parse(report_kind)]


def collect_report_records(
    source: SnapshotSource,
    report_kind: Union[str, ReportKind],
    start_date: datetime,
    end_date: datetime,
) -> List[RecordModel]:
    """Records of the report's dataset whose key timestamp lies in [start, end]."""
    check_range(start_date, end_date)
    dataset = dataset_for(report_kind)
    return as_snapshot(source).list(dataset.kind, RecordFilter(start_date=start_date, end_date=end_date))


def render_csv(header: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    """
    CSV with RFC 4180 quoting: cells containing commas, quotes or newlines
    are wrapped in quotes and embedded quotes are doubled.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def _header_block(title: str, raw_kind: str, start: datetime, end: datetime, now: datetime) -> List[str]:
    return [
        title,
        f"Report Type: {raw_kind}",
        f"Date Range: {start:%Y-%m-%d} - {end:%Y-%m-%d}",
        f"Generated: {now.isoformat(timespec='seconds')}",
        "",
    ]


def format_report(
    source: SnapshotSource,
    report_kind: Union[str, ReportKind],
    start_date: datetime,
    end_date: datetime,
    output_kind: Union[str, OutputKind] = OutputKind.TEXT,
    now: Optional[datetime] = None,
    title: str = DEFAULT_TITLE,
) -> str:
    """
    Renders one report.

    Args:
        source: Store or snapshot to read from. A store is snapshotted once.
        report_kind: Report template name; unknown names render the usage export.
        start_date / end_date: Inclusive range on each record's key timestamp.
        output_kind: ``text`` or ``csv``.
        now: Generation time (header timestamp and "today" for KPI lines);
            defaults to when the snapshot was taken.
        title: First line of text reports.
    """
    check_range(start_date, end_date)
    output = OutputKind.parse(output_kind)
    kind = ReportKind.parse(report_kind)
    dataset = REPORT_DATASETS[kind]
    snapshot = as_snapshot(source)
    now = now or snapshot.taken_at

    if kind is ReportKind.UNKNOWN:
        logger.warning(f"Unknown report type {report_kind!r}; using the default usage export")

    records = collect_report_records(snapshot, kind, start_date, end_date)

    if output is OutputKind.CSV:
        return render_csv(dataset.header, [dataset.row(record) for record in records])

    raw_kind = report_kind.value if isinstance(report_kind, ReportKind) else str(report_kind)
    section = SECTION_TITLES[kind]
    lines = _header_block(title, raw_kind, start_date, end_date, now)
    lines += [section, "=" * len(section)]

    if kind is ReportKind.DAILY_OPERATIONS:
        lines += kpi_summary_lines(compute_kpis(snapshot, now=now))
    else:
        lines += [dataset.line(record) for record in records]

    return "\n".join(lines) + "\n"
