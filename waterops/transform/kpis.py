import logging
import math
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from waterops.schemas.api_models import DashboardKPIs
from waterops.schemas.records import OPEN_LEAK_STATUSES, EntityKind, UsageReading
from waterops.store.base import SnapshotSource, as_snapshot
from waterops.utils.dates import normalize_utc_midnight

logger = logging.getLogger(__name__)


class DailyUsageAggregator:
    """
    Groups usage readings by UTC calendar day.
    Gallon totals use ``math.fsum`` so a day's total is exact and does not
    depend on the order readings arrive in.
    """

    def __init__(self):
        # Key: UTC midnight of the reading's day
        # Value: {gallons: [...], pressures: [...]}
        self.groups: Dict[datetime, Dict[str, List[float]]] = {}

    def consume(self, reading: UsageReading):
        key = normalize_utc_midnight(reading.timestamp)
        stats = self.groups.setdefault(key, {"gallons": [], "pressures": []})
        stats["gallons"].append(reading.gallons)
        stats["pressures"].append(reading.pressure)

    def total_gallons(self, day: datetime) -> float:
        stats = self.groups.get(normalize_utc_midnight(day))
        return math.fsum(stats["gallons"]) if stats else 0.0

    def average_pressure(self, day: datetime) -> Optional[float]:
        stats = self.groups.get(normalize_utc_midnight(day))
        if not stats or not stats["pressures"]:
            return None
        return math.fsum(stats["pressures"]) / len(stats["pressures"])

    def reading_count(self, day: datetime) -> int:
        stats = self.groups.get(normalize_utc_midnight(day))
        return len(stats["gallons"]) if stats else 0


def percent_change(current: float, previous: float) -> float:
    """Percentage change from previous to current; 0 when previous is 0."""
    if previous == 0:
        return 0.0
    return round((current - previous) / previous * 100, 1)


def compute_kpis(source: SnapshotSource, now: Optional[datetime] = None) -> DashboardKPIs:
    """
    Derives the dashboard KPIs from a store (or snapshot).
    Everything is recomputed on each call; nothing is cached between calls.
    """
    snapshot = as_snapshot(source)
    now = now or snapshot.taken_at

    today = normalize_utc_midnight(now)
    yesterday = today - timedelta(days=1)

    usage = DailyUsageAggregator()
    for reading in snapshot.list(EntityKind.USAGE):
        usage.consume(reading)

    total_today = usage.total_gallons(today)
    total_yesterday = usage.total_gallons(yesterday)
    avg_pressure = usage.average_pressure(today)

    leaks = snapshot.list(EntityKind.LEAKS)
    tasks = snapshot.list(EntityKind.MAINTENANCE)
    alerts = snapshot.list(EntityKind.ALERTS)

    kpis = DashboardKPIs(
        total_usage_today=total_today,
        usage_change_percent=percent_change(total_today, total_yesterday),
        active_leak_count=sum(1 for leak in leaks if leak.status in OPEN_LEAK_STATUSES),
        average_system_pressure=round(avg_pressure, 1) if avg_pressure is not None else None,
        pending_maintenance_count=sum(1 for task in tasks if task.status == "pending"),
        unread_alert_count=sum(1 for alert in alerts if not alert.is_read),
    )

    logger.debug(
        f"KPIs for {today.date()}: {usage.reading_count(today)} readings today, "
        f"{usage.reading_count(yesterday)} yesterday"
    )
    return kpis


def kpi_summary_lines(kpis: DashboardKPIs) -> List[str]:
    """Human-readable KPI lines used by the daily operations report."""
    pressure = (
        f"{kpis.average_system_pressure:.1f} PSI"
        if kpis.average_system_pressure is not None else "N/A"
    )
    return [
        f"Total Water Usage: {kpis.total_usage_today / 1_000_000:.1f}M gallons",
        f"Usage Change vs. Yesterday: {kpis.usage_change_percent:+.1f}%",
        f"Average System Pressure: {pressure}",
        f"Active Leaks: {kpis.active_leak_count}",
        f"Pending Maintenance Tasks: {kpis.pending_maintenance_count}",
        f"Unread Alerts: {kpis.unread_alert_count}",
    ]
