import logging
from datetime import datetime, timedelta
from typing import Any, Optional, Tuple

from waterops.errors import RecordValidationError
from waterops.reporting.export import ExportFormat, ExportPackage, package
from waterops.reporting.formatter import (
    DEFAULT_TITLE,
    OutputKind,
    ReportKind,
    collect_report_records,
    format_report,
)
from waterops.schemas.api_models import ReportRequest
from waterops.store.base import SnapshotSource, as_snapshot
from waterops.utils.dates import check_range, parse_datetime

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(days=7)


def resolve_window(
    start_raw: Any,
    end_raw: Any,
    now: datetime,
) -> Tuple[datetime, datetime]:
    """
    Parses the requested range. End defaults to now and start to seven days
    before the end; a date-only end covers that whole day.
    """
    end = parse_datetime(end_raw, end_of_day=True) or now
    start = parse_datetime(start_raw) or end - DEFAULT_WINDOW
    check_range(start, end)
    return start, end


def generate_report(
    source: SnapshotSource,
    request: ReportRequest,
    now: Optional[datetime] = None,
    requested_by: Optional[str] = None,
    title: str = DEFAULT_TITLE,
) -> ExportPackage:
    """
    Runs the export pipeline on one snapshot: validate, format, package.

    Raises:
        RecordValidationError: reportType or format missing.
        UnsupportedFormatError: format is not pdf, csv or json.
        DateRangeError: malformed dates or end before start.
    """
    if not request.report_type or not request.format:
        raise RecordValidationError("Report type and format are required")

    fmt = ExportFormat.parse(request.format)
    snapshot = as_snapshot(source)
    now = now or snapshot.taken_at
    start, end = resolve_window(request.start_date, request.end_date, now)
    kind = ReportKind.parse(request.report_type)

    if fmt is ExportFormat.JSON:
        payload = collect_report_records(snapshot, kind, start, end)
    else:
        output = OutputKind.TEXT if fmt is ExportFormat.PDF else OutputKind.CSV
        payload = format_report(snapshot, request.report_type, start, end, output, now=now, title=title)

    export = package(payload, fmt, request.report_type, start, end)
    logger.info(
        f"📄 Generated {fmt.value} report '{request.report_type}' "
        f"({start.date()} -> {end.date()}, {len(export.content)} bytes)"
        + (f" for {requested_by}" if requested_by else "")
    )
    return export
