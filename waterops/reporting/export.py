"""
Export Transport: frames a formatted report for download.

Note: ``pdf`` exports carry the plain-text report labelled as
``application/pdf``; there is no real PDF rendering.
"""

import json
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Sequence, Union

from pydantic import BaseModel

from waterops.errors import UnsupportedFormatError


class ExportFormat(str, Enum):
    PDF = "pdf"
    CSV = "csv"
    JSON = "json"

    @classmethod
    def parse(cls, value: Any) -> "ExportFormat":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedFormatError(
                f"Unsupported format: {value!r} (expected one of: pdf, csv, json)"
            )


CONTENT_TYPES: Dict[ExportFormat, str] = {
    ExportFormat.PDF: "application/pdf",
    ExportFormat.CSV: "text/csv; charset=utf-8",
    ExportFormat.JSON: "application/json; charset=utf-8",
}


class ExportPackage(BaseModel):
    content: bytes
    content_type: str
    filename: str

    @property
    def content_disposition(self) -> str:
        return f'attachment; filename="{self.filename}"'


def build_filename(
    report_type: str,
    export_format: Union[str, ExportFormat],
    start_date: datetime,
    end_date: datetime,
) -> str:
    fmt = ExportFormat.parse(export_format)
    safe_type = re.sub(r"[^A-Za-z0-9_-]+", "_", report_type.strip()) or "report"
    return f"{safe_type}_{start_date:%Y-%m-%d}_{end_date:%Y-%m-%d}.{fmt.value}"


def serialize_records(records: Sequence[Any]) -> str:
    """Raw record list as 2-space indented JSON (camelCase keys, ISO timestamps)."""
    rows: List[Any] = [
        r.model_dump(mode="json", by_alias=True) if isinstance(r, BaseModel) else r
        for r in records
    ]
    return json.dumps(rows, indent=2, default=str)


def package(
    payload: Union[str, Sequence[Any]],
    export_format: Union[str, ExportFormat],
    report_type: str,
    start_date: datetime,
    end_date: datetime,
) -> ExportPackage:
    """
    Wraps a report payload as bytes with its content type and filename.

    ``payload`` is the formatted text for ``pdf``/``csv`` and the raw record
    list for ``json``.
    """
    fmt = ExportFormat.parse(export_format)

    if fmt is ExportFormat.JSON:
        body = payload if isinstance(payload, str) else serialize_records(payload)
    else:
        if not isinstance(payload, str):
            raise TypeError(f"{fmt.value} exports expect a formatted text payload")
        body = payload

    return ExportPackage(
        content=body.encode("utf-8"),
        content_type=CONTENT_TYPES[fmt],
        filename=build_filename(report_type, fmt, start_date, end_date),
    )
