from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Identity(CamelModel):
    """The operator a request runs on behalf of (authentication is mocked)."""
    username: str
    full_name: str
    role: str = "analyst"
    department: str = ""


class DashboardKPIs(CamelModel):
    total_usage_today: float = Field(..., description="Gallons recorded in the current UTC day")
    usage_change_percent: float = Field(..., description="Change vs. the previous day; 0 when yesterday is 0")
    active_leak_count: int
    average_system_pressure: Optional[float] = Field(
        default=None, description="Mean PSI over today's readings; null without readings"
    )
    pending_maintenance_count: int
    unread_alert_count: int


class ChartPoint(CamelModel):
    day: str = Field(..., description="Short weekday name, e.g. 'Mon'")
    date: str = Field(..., description="YYYY-MM-DD (UTC)")
    gallons: float = Field(..., description="Millions of gallons")


class ReportRequest(CamelModel):
    """
    Body of ``POST /api/reports/generate``.
    Type and format are optional here so a missing value is answered with
    a 400 from the report pipeline rather than a schema error. Dates are
    left untyped for the same reason and parsed by the pipeline.
    """
    report_type: Optional[str] = None
    format: Optional[str] = None
    start_date: Optional[Any] = Field(default=None, description="ISO-8601 or YYYY-MM-DD; defaults to 7 days before the end")
    end_date: Optional[Any] = Field(default=None, description="ISO-8601 or YYYY-MM-DD; defaults to now")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "reportType": "daily-operations",
                "format": "csv",
                "startDate": "2026-10-01",
                "endDate": "2026-10-07",
            }
        },
    )
