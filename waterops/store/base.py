from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from waterops.errors import RecordValidationError
from waterops.schemas.records import (
    TASK_STATUS_ORDER,
    Alert,
    EntityKind,
    Leak,
    MaintenanceTask,
    RecordModel,
    spec_for,
)
from waterops.utils.dates import check_range, day_bounds, ensure_utc, utc_now

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class RecordFilter:
    """
    Query options for ``RecordStore.list``.

    ``start_date`` / ``end_date`` apply to the kind's key timestamp
    (see ``KIND_SPECS``) and are both inclusive.
    """
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location: Optional[str] = None
    status: Optional[str] = None
    unread_only: bool = False
    limit: Optional[int] = None

    def __post_init__(self):
        if self.start_date is not None:
            object.__setattr__(self, "start_date", ensure_utc(self.start_date))
        if self.end_date is not None:
            object.__setattr__(self, "end_date", ensure_utc(self.end_date))
        check_range(self.start_date, self.end_date)
        if self.limit is not None and self.limit < 1:
            raise RecordValidationError("limit must be a positive integer")


def _has_field(kind: EntityKind, name: str) -> bool:
    return name in spec_for(kind).model.model_fields


def filter_records(
    kind: EntityKind,
    records: Iterable[RecordModel],
    filters: Optional[RecordFilter] = None,
) -> List[RecordModel]:
    """Applies a RecordFilter in memory and returns the kind's default ordering."""
    spec = spec_for(kind)
    filters = filters or RecordFilter()
    selected = []

    for record in records:
        stamp = getattr(record, spec.time_field)
        if filters.start_date is not None and stamp < filters.start_date:
            continue
        if filters.end_date is not None and stamp > filters.end_date:
            continue
        if filters.location and filters.location.lower() not in record.location.lower():
            continue
        if filters.status and _has_field(kind, "status") and record.status != filters.status:
            continue
        if filters.unread_only and _has_field(kind, "is_read") and record.is_read:
            continue
        selected.append(record)

    selected.sort(key=lambda r: (getattr(r, spec.time_field), r.id), reverse=spec.newest_first)

    if filters.limit is not None:
        selected = selected[:filters.limit]
    return selected


class StoreSnapshot:
    """Immutable copy of every record, taken in one step for aggregation and reporting."""

    def __init__(self, records: Mapping[EntityKind, Sequence[RecordModel]], taken_at: datetime):
        self._records = {kind: tuple(records.get(kind, ())) for kind in EntityKind}
        self.taken_at = taken_at

    def list(self, kind: EntityKind, filters: Optional[RecordFilter] = None) -> List[RecordModel]:
        kind = EntityKind.parse(kind)
        return filter_records(kind, self._records[kind], filters)

    def count(self, kind: EntityKind) -> int:
        return len(self._records[EntityKind.parse(kind)])


# --- Field validation & state transitions (shared by every backend) ---

def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ())) or "record"
        parts.append(f"{location}: {err.get('msg')}")
    return "; ".join(parts)


def normalize_fields(kind: EntityKind, fields: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Maps camelCase or snake_case keys onto model field names.

    Raises:
        RecordValidationError: on unknown fields or an attempt to set ``id``.
    """
    if not isinstance(fields, Mapping):
        raise RecordValidationError("Record fields must be a JSON object")

    model_fields = spec_for(kind).model.model_fields
    lookup = {}
    for name in model_fields:
        lookup[name] = name
        lookup[to_camel(name)] = name

    normalized = {}
    unknown = []
    for key, value in fields.items():
        name = lookup.get(key)
        if name is None:
            unknown.append(key)
        elif name == "id":
            raise RecordValidationError("id is assigned by the store and cannot be set")
        else:
            normalized[name] = value

    if unknown:
        raise RecordValidationError(
            f"Unknown field(s) for {kind.value}: {', '.join(sorted(unknown))}",
            context={"fields": sorted(unknown)},
        )
    return normalized


def build_record(kind: EntityKind, record_id: int, fields: Mapping[str, Any]) -> RecordModel:
    model = spec_for(kind).model
    try:
        return model.model_validate({**fields, "id": record_id})
    except ValidationError as exc:
        raise RecordValidationError(
            f"Invalid {kind.value} record: {_describe_validation_error(exc)}"
        ) from exc


def prepare_new_fields(kind: EntityKind, fields: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
    """Normalizes create payloads and fills the defaults a new record starts with."""
    kind = EntityKind.parse(kind)
    prepared = normalize_fields(kind, fields)
    time_field = spec_for(kind).time_field

    if prepared.get(time_field) is None:
        prepared[time_field] = now

    if kind is EntityKind.LEAKS:
        prepared["status"] = prepared.get("status") or "active"
        if prepared["status"] == "resolved":
            prepared["resolved_at"] = prepared.get("resolved_at") or now
        else:
            prepared["resolved_at"] = None

    elif kind is EntityKind.MAINTENANCE:
        prepared["status"] = prepared.get("status") or "pending"
        if prepared["status"] == "completed":
            prepared["completed_date"] = prepared.get("completed_date") or now
        elif prepared.get("completed_date") is not None:
            raise RecordValidationError("completedDate can only be set when status is 'completed'")

    elif kind is EntityKind.ALERTS:
        prepared["is_read"] = bool(prepared.get("is_read") or False)

    return prepared


# Fields a patch may touch; kinds not listed accept any schema field
PATCHABLE_FIELDS: Dict[EntityKind, frozenset] = {
    EntityKind.LEAKS: frozenset({"status", "assigned_technician", "notes", "estimated_gallons_lost", "resolved_at"}),
    EntityKind.ALERTS: frozenset({"is_read"}),
}


def _check_patchable(kind: EntityKind, changes: Mapping[str, Any]) -> None:
    allowed = PATCHABLE_FIELDS.get(kind)
    if allowed is None:
        return
    fixed = sorted(to_camel(name) for name in changes if name not in allowed)
    if fixed:
        raise RecordValidationError(
            f"Field(s) cannot be changed on {kind.value}: {', '.join(fixed)}",
            context={"fields": fixed},
        )


def _leak_changes(current: Leak, changes: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    new_status = changes.get("status", current.status)
    if current.status == "resolved" and new_status != "resolved":
        raise RecordValidationError(f"Leak {current.id} is resolved and cannot be reopened")

    if new_status == "resolved":
        if current.status != "resolved" and changes.get("resolved_at") is None:
            changes["resolved_at"] = now
    else:
        changes["resolved_at"] = None
    return changes


def _maintenance_changes(current: MaintenanceTask, changes: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    new_status = changes.get("status", current.status)
    if new_status in TASK_STATUS_ORDER and (
        TASK_STATUS_ORDER.index(new_status) < TASK_STATUS_ORDER.index(current.status)
    ):
        raise RecordValidationError(
            f"Maintenance task {current.id} cannot move from '{current.status}' back to '{new_status}'"
        )

    if new_status == "completed":
        if changes.get("completed_date") is None:
            changes["completed_date"] = current.completed_date or now
    else:
        if changes.get("completed_date") is not None:
            raise RecordValidationError("completedDate can only be set when status is 'completed'")
        changes["completed_date"] = None
    return changes


def apply_patch(
    kind: EntityKind,
    current: RecordModel,
    patch: Mapping[str, Any],
    now: datetime,
) -> RecordModel:
    """
    Validates a partial update against the kind's state rules and returns
    the new record. The current record is left untouched.
    """
    kind = EntityKind.parse(kind)
    if kind is EntityKind.USAGE:
        raise RecordValidationError("Water usage readings are immutable once recorded")
    if kind is EntityKind.ACTIVITIES:
        raise RecordValidationError("The activity log is append-only")

    changes = normalize_fields(kind, patch)
    _check_patchable(kind, changes)
    if kind is EntityKind.LEAKS:
        changes = _leak_changes(current, changes, now)
    elif kind is EntityKind.MAINTENANCE:
        changes = _maintenance_changes(current, changes, now)

    merged = current.model_dump()
    merged.update(changes)
    updated = build_record(kind, current.id, {k: v for k, v in merged.items() if k != "id"})

    if isinstance(current, Alert) and current.is_read and not updated.is_read:
        raise RecordValidationError(f"Alert {current.id} is already read and cannot be marked unread")
    return updated


class RecordStore(ABC):
    """
    Abstract persistence for water-usage readings, leaks, maintenance tasks,
    alerts and activities. Ids are integers assigned monotonically per kind.
    """

    backend_name = "abstract"

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or utc_now

    def now(self) -> datetime:
        return ensure_utc(self._clock())

    @abstractmethod
    def list(self, kind: EntityKind, filters: Optional[RecordFilter] = None) -> List[RecordModel]:
        """Records of one kind, in the kind's default order."""

    @abstractmethod
    def get_by_id(self, kind: EntityKind, record_id: int) -> RecordModel:
        """Raises RecordNotFound for an unknown id."""

    @abstractmethod
    def create(self, kind: EntityKind, fields: Mapping[str, Any]) -> RecordModel:
        """Validates the fields and stores a new record with a generated id."""

    @abstractmethod
    def update(self, kind: EntityKind, record_id: int, fields: Mapping[str, Any]) -> RecordModel:
        """Applies a partial update; raises RecordNotFound for an unknown id."""

    @abstractmethod
    def snapshot(self) -> StoreSnapshot:
        pass

    def health_check(self) -> None:
        pass

    def close(self) -> None:
        pass

    def is_empty(self) -> bool:
        return all(not self.list(kind, RecordFilter(limit=1)) for kind in EntityKind)

    # --- Domain operations built on the primitives ---

    def mark_alert_read(self, alert_id: int) -> Alert:
        """Idempotent: reading an already-read alert is a no-op."""
        return self.update(EntityKind.ALERTS, alert_id, {"is_read": True})

    def create_leak(self, fields: Mapping[str, Any]) -> Leak:
        """Records a leak and raises the matching alert."""
        leak = self.create(EntityKind.LEAKS, fields)
        self.create(EntityKind.ALERTS, {
            "type": "leak",
            "severity": "critical" if leak.severity == "critical" else "warning",
            "location": leak.location,
            "message": f"Leak Detected at {leak.location}",
            "timestamp": leak.detected_at,
            "is_read": False,
        })
        return leak

    def todays_maintenance(self, now: Optional[datetime] = None) -> List[MaintenanceTask]:
        start, next_day = day_bounds(now or self.now())
        window = RecordFilter(start_date=start, end_date=next_day - timedelta(microseconds=1))
        return self.list(EntityKind.MAINTENANCE, window)


SnapshotSource = Union[RecordStore, StoreSnapshot]


def as_snapshot(source: SnapshotSource) -> StoreSnapshot:
    if isinstance(source, StoreSnapshot):
        return source
    return source.snapshot()
