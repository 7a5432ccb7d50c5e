from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query

from waterops.api.deps import get_store
from waterops.schemas.api_models import ChartPoint
from waterops.schemas.records import EntityKind, UsageReading
from waterops.store.base import RecordFilter, RecordStore
from waterops.transform.charts import DEFAULT_PERIOD, usage_chart_series
from waterops.utils.dates import parse_datetime

router = APIRouter(prefix="/api/water-usage", tags=["Water Usage"])


@router.get("", response_model=List[UsageReading])
def list_usage(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    location: Optional[str] = Query(None),
    store: RecordStore = Depends(get_store),
):
    """
    Usage readings, newest first. Both dates are inclusive; a date-only
    ``endDate`` covers that whole day.
    """
    filters = RecordFilter(
        start_date=parse_datetime(start_date),
        end_date=parse_datetime(end_date, end_of_day=True),
        location=location,
    )
    return store.list(EntityKind.USAGE, filters)


@router.post("", response_model=UsageReading, status_code=201)
def create_usage(payload: Dict[str, Any] = Body(...), store: RecordStore = Depends(get_store)):
    return store.create(EntityKind.USAGE, payload)


@router.get("/chart-data", response_model=List[ChartPoint])
@router.get("/chart-data/{period}", response_model=List[ChartPoint])
def chart_data(period: str = DEFAULT_PERIOD, store: RecordStore = Depends(get_store)):
    """Daily totals in millions of gallons for ``7D`` or ``30D``."""
    return usage_chart_series(store, period, now=store.now())
