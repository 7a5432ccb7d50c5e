from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query

from waterops.api.deps import get_store
from waterops.schemas.records import EntityKind, Leak
from waterops.store.base import RecordFilter, RecordStore

router = APIRouter(prefix="/api/leaks", tags=["Leaks"])


@router.get("", response_model=List[Leak])
def list_leaks(status: Optional[str] = Query(None), store: RecordStore = Depends(get_store)):
    return store.list(EntityKind.LEAKS, RecordFilter(status=status))


@router.post("", response_model=Leak, status_code=201)
def create_leak(payload: Dict[str, Any] = Body(...), store: RecordStore = Depends(get_store)):
    """Records a leak and raises a matching alert."""
    return store.create_leak(payload)


@router.patch("/{leak_id}", response_model=Leak)
def update_leak(leak_id: int, payload: Dict[str, Any] = Body(...), store: RecordStore = Depends(get_store)):
    """
    Partial update (status, technician, notes, estimate).
    Moving to ``resolved`` stamps ``resolvedAt``; resolved leaks stay resolved.
    """
    return store.update(EntityKind.LEAKS, leak_id, payload)
