from fastapi import APIRouter, Depends

from waterops.api.deps import get_store
from waterops.schemas.api_models import DashboardKPIs
from waterops.store.base import RecordStore
from waterops.transform.kpis import compute_kpis

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


@router.get("/kpis", response_model=DashboardKPIs)
def get_kpis(store: RecordStore = Depends(get_store)):
    """Recomputed from the store on every call."""
    return compute_kpis(store, now=store.now())
