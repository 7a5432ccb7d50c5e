from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, Query

from waterops.api.deps import get_store
from waterops.schemas.records import Activity, EntityKind
from waterops.store.base import RecordFilter, RecordStore

router = APIRouter(prefix="/api/activities", tags=["Activities"])


@router.get("", response_model=List[Activity])
def recent_activities(limit: int = Query(10, ge=1), store: RecordStore = Depends(get_store)):
    """Most recent activity log entries first."""
    return store.list(EntityKind.ACTIVITIES, RecordFilter(limit=limit))


@router.post("", response_model=Activity, status_code=201)
def log_activity(payload: Dict[str, Any] = Body(...), store: RecordStore = Depends(get_store)):
    return store.create(EntityKind.ACTIVITIES, payload)
