from datetime import datetime, timedelta
from typing import List, Optional

import pandas as pd

from waterops.schemas.api_models import ChartPoint
from waterops.schemas.records import EntityKind
from waterops.store.base import RecordFilter, SnapshotSource, as_snapshot

CHART_PERIODS = {"7D": 7, "30D": 30}
DEFAULT_PERIOD = "7D"


def usage_chart_series(
    source: SnapshotSource,
    period: str = DEFAULT_PERIOD,
    now: Optional[datetime] = None,
) -> List[ChartPoint]:
    """
    Daily usage totals (millions of gallons) for the dashboard chart.
    Unknown periods fall back to 7 days.
    """
    snapshot = as_snapshot(source)
    now = now or snapshot.taken_at
    days = CHART_PERIODS.get((period or DEFAULT_PERIOD).upper(), CHART_PERIODS[DEFAULT_PERIOD])
    window = RecordFilter(start_date=now - timedelta(days=days), end_date=now)

    readings = snapshot.list(EntityKind.USAGE, window)
    if not readings:
        return []

    df = pd.DataFrame([{"timestamp": r.timestamp, "gallons": r.gallons} for r in readings])
    df["date"] = pd.to_datetime(df["timestamp"], utc=True).dt.floor("D")

    grouped = (
        df.groupby("date", as_index=False)
        .agg(gallons=("gallons", "sum"))
        .sort_values("date")
    )
    grouped["gallons"] = (grouped["gallons"] / 1_000_000).round(1)

    return [
        ChartPoint(day=day.strftime("%a"), date=day.strftime("%Y-%m-%d"), gallons=float(gallons))
        for day, gallons in zip(grouped["date"], grouped["gallons"])
    ]
