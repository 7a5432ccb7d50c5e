import logging
import random
from datetime import datetime, timedelta
from typing import Optional

from waterops.schemas.records import EntityKind
from waterops.store.base import RecordStore

logger = logging.getLogger(__name__)

LOCATIONS = ["North Treatment Plant", "Downtown District", "Riverside District", "Pine Street Station 7"]


def seed_store(store: RecordStore, now: Optional[datetime] = None, seed: int = 7) -> int:
    """
    Fills a store with a week of demo readings plus a few leaks, tasks,
    alerts and activities around ``now``. Returns the number of records created.
    """
    now = now or store.now()
    rng = random.Random(seed)
    created = 0

    logger.info("🌱 Seeding store with demo operations data...")

    # 1. One week of readings per location
    for days_ago in range(7):
        for location in LOCATIONS[:2]:
            store.create(EntityKind.USAGE, {
                "location": location,
                "timestamp": now - timedelta(days=days_ago, hours=rng.randint(0, 3)),
                "gallons": round(2_000_000 + rng.uniform(0, 500_000), 1),
                "pressure": round(75 + rng.uniform(0, 10), 1),
                "flowRate": round(1500 + rng.uniform(0, 300), 1),
                "temperature": round(65 + rng.uniform(0, 10), 1),
                "qualityMetrics": {"pH": 7.2, "chlorine": 0.8},
            })
            created += 1

    # 2. Leaks (each raises its own alert)
    store.create_leak({
        "location": "Main St & 4th Ave",
        "severity": "critical",
        "status": "active",
        "detectedAt": now - timedelta(hours=1),
        "estimatedGallonsLost": 1500,
        "assignedTechnician": "Mike Johnson",
        "notes": "Major leak causing pressure drop",
    })
    store.create_leak({
        "location": "Pine Street Sector",
        "severity": "medium",
        "status": "investigating",
        "detectedAt": now - timedelta(hours=2),
        "estimatedGallonsLost": 200,
        "assignedTechnician": "Sarah Chen",
    })
    created += 4

    # 3. Maintenance schedule
    store.create(EntityKind.MAINTENANCE, {
        "taskType": "inspection",
        "location": "North Treatment Plant",
        "priority": "high",
        "status": "pending",
        "scheduledDate": now + timedelta(hours=2),
        "assignedTechnician": "Sarah Chen",
        "estimatedDuration": 120,
        "description": "Pump Station Inspection",
    })
    store.create(EntityKind.MAINTENANCE, {
        "taskType": "repair",
        "location": "Downtown District",
        "priority": "normal",
        "status": "pending",
        "scheduledDate": now + timedelta(hours=4),
        "assignedTechnician": "Mike Johnson",
        "estimatedDuration": 180,
        "description": "Valve Replacement",
    })
    created += 2

    # 4. Sensor alerts
    store.create(EntityKind.ALERTS, {
        "type": "pressure",
        "severity": "critical",
        "location": "Pine Street Station 7",
        "message": "High Pressure Detected",
        "timestamp": now - timedelta(minutes=15),
    })
    store.create(EntityKind.ALERTS, {
        "type": "flow",
        "severity": "warning",
        "location": "Riverside District",
        "message": "Low Flow Detected",
        "timestamp": now - timedelta(minutes=32),
    })
    created += 2

    # 5. Activity log
    for minutes_ago, event, location, status, technician in [
        (20, "Valve Inspection", "Zone 4B", "completed", "Mike Johnson"),
        (45, "Pressure Test", "Pine Street Station 7", "in_progress", "Sarah Chen"),
        (90, "Meter Reading", "Riverside District", "completed", None),
    ]:
        store.create(EntityKind.ACTIVITIES, {
            "eventType": event,
            "location": location,
            "status": status,
            "technician": technician,
            "timestamp": now - timedelta(minutes=minutes_ago),
        })
        created += 1

    logger.info(f"✅ Seeded {created} records.")
    return created
