"""
Record models for the five entity kinds the store holds.

Fields are snake_case in Python and camelCase on the wire; both spellings
are accepted on input. Records are frozen: changes go through the store,
which validates the new state and swaps in a fresh instance.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, Literal, NamedTuple, Optional, Type

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from waterops.errors import UnknownEntityKind
from waterops.utils.dates import ensure_utc

UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]

LeakSeverity = Literal["low", "medium", "critical"]
LeakStatus = Literal["active", "investigating", "resolved"]
TaskPriority = Literal["low", "normal", "high", "critical"]
TaskStatus = Literal["pending", "in_progress", "completed"]
AlertSeverity = Literal["info", "warning", "critical"]

# Forward-only order for maintenance tasks
TASK_STATUS_ORDER = ("pending", "in_progress", "completed")
OPEN_LEAK_STATUSES = ("active", "investigating")


class RecordModel(BaseModel):
    """Base configuration for immutable store records."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )

    id: int = Field(..., ge=1)


class UsageReading(RecordModel):
    """
    Collection: water_usage
    A metered reading at one location. Immutable once recorded.
    """
    timestamp: UtcDatetime
    location: str = Field(..., min_length=1)
    gallons: float = Field(..., ge=0)
    pressure: float = Field(..., ge=0, description="PSI")
    flow_rate: float = Field(..., ge=0, description="GPM")
    temperature: Optional[float] = Field(default=None, description="Fahrenheit")
    quality_metrics: Optional[Dict[str, Any]] = Field(default=None, description="pH, chlorine, etc.")


class Leak(RecordModel):
    """
    Collection: leaks
    Terminal state is ``resolved``.
    """
    location: str = Field(..., min_length=1)
    severity: LeakSeverity
    status: LeakStatus = "active"
    detected_at: UtcDatetime
    resolved_at: Optional[UtcDatetime] = None
    estimated_gallons_lost: Optional[float] = Field(default=None, ge=0)
    assigned_technician: Optional[str] = None
    notes: Optional[str] = None


class MaintenanceTask(RecordModel):
    """
    Collection: maintenance
    Moves pending -> in_progress -> completed. ``completed_date`` is set
    exactly when the task is completed.
    """
    task_type: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    priority: TaskPriority
    status: TaskStatus = "pending"
    scheduled_date: UtcDatetime
    completed_date: Optional[UtcDatetime] = None
    assigned_technician: str = Field(..., min_length=1)
    description: str
    estimated_duration: Optional[int] = Field(default=None, ge=0, description="minutes")
    cost: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def completed_date_matches_status(self):
        if (self.status == "completed") != (self.completed_date is not None):
            raise ValueError("completedDate must be set if and only if status is 'completed'")
        return self


class Alert(RecordModel):
    """
    Collection: alerts
    ``is_read`` only ever flips from false to true.
    """
    type: str = Field(..., min_length=1)
    severity: AlertSeverity
    location: str
    message: str
    timestamp: UtcDatetime
    is_read: bool = False


class Activity(RecordModel):
    """
    Collection: activities
    Append-only operations log.
    """
    event_type: str = Field(..., min_length=1)
    location: str
    status: Optional[str] = None
    technician: Optional[str] = None
    timestamp: UtcDatetime
    details: Optional[str] = None


class EntityKind(str, Enum):
    USAGE = "usage"
    LEAKS = "leaks"
    MAINTENANCE = "maintenance"
    ALERTS = "alerts"
    ACTIVITIES = "activities"

    @classmethod
    def parse(cls, value: Any) -> "EntityKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownEntityKind(f"Unknown entity kind: {value!r}")


class KindSpec(NamedTuple):
    model: Type[RecordModel]
    collection: str
    time_field: str
    newest_first: bool


KIND_SPECS: Dict[EntityKind, KindSpec] = {
    EntityKind.USAGE: KindSpec(UsageReading, "water_usage", "timestamp", True),
    EntityKind.LEAKS: KindSpec(Leak, "leaks", "detected_at", True),
    # Schedule order, soonest first
    EntityKind.MAINTENANCE: KindSpec(MaintenanceTask, "maintenance", "scheduled_date", False),
    EntityKind.ALERTS: KindSpec(Alert, "alerts", "timestamp", True),
    EntityKind.ACTIVITIES: KindSpec(Activity, "activities", "timestamp", True),
}


def spec_for(kind: EntityKind) -> KindSpec:
    return KIND_SPECS[EntityKind.parse(kind)]
