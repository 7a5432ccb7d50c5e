from datetime import timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query

from waterops.api.deps import get_store
from waterops.schemas.records import EntityKind, MaintenanceTask
from waterops.store.base import RecordFilter, RecordStore
from waterops.utils.dates import day_bounds, parse_datetime

router = APIRouter(prefix="/api/maintenance", tags=["Maintenance"])


@router.get("", response_model=List[MaintenanceTask])
def list_tasks(
    status: Optional[str] = Query(None),
    date: Optional[str] = Query(None, description="YYYY-MM-DD; tasks scheduled that day"),
    store: RecordStore = Depends(get_store),
):
    """Tasks ordered by scheduled date, soonest first."""
    start = end = None
    day = parse_datetime(date)
    if day is not None:
        start, next_day = day_bounds(day)
        end = next_day - timedelta(microseconds=1)
    return store.list(EntityKind.MAINTENANCE, RecordFilter(start_date=start, end_date=end, status=status))


@router.get("/today", response_model=List[MaintenanceTask])
def todays_tasks(store: RecordStore = Depends(get_store)):
    return store.todays_maintenance()


@router.post("", response_model=MaintenanceTask, status_code=201)
def create_task(payload: Dict[str, Any] = Body(...), store: RecordStore = Depends(get_store)):
    return store.create(EntityKind.MAINTENANCE, payload)


@router.patch("/{task_id}", response_model=MaintenanceTask)
def update_task(task_id: int, payload: Dict[str, Any] = Body(...), store: RecordStore = Depends(get_store)):
    return store.update(EntityKind.MAINTENANCE, task_id, payload)
