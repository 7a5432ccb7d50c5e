from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, Query

from waterops.api.deps import get_store
from waterops.schemas.records import Alert, EntityKind
from waterops.store.base import RecordFilter, RecordStore

router = APIRouter(prefix="/api/alerts", tags=["Alerts"])


@router.get("", response_model=List[Alert])
def list_alerts(
    unread_only: bool = Query(False, alias="unreadOnly"),
    store: RecordStore = Depends(get_store),
):
    return store.list(EntityKind.ALERTS, RecordFilter(unread_only=unread_only))


@router.post("", response_model=Alert, status_code=201)
def create_alert(payload: Dict[str, Any] = Body(...), store: RecordStore = Depends(get_store)):
    return store.create(EntityKind.ALERTS, payload)


@router.patch("/{alert_id}/read", response_model=Alert)
def mark_read(alert_id: int, store: RecordStore = Depends(get_store)):
    """Idempotent; an alert already read is returned unchanged."""
    return store.mark_alert_read(alert_id)
