import logging
from typing import Optional

from waterops.config.mongo_client import OperationsMongoClient
from waterops.config.settings import Settings
from waterops.store.base import (
    Clock,
    RecordFilter,
    RecordStore,
    SnapshotSource,
    StoreSnapshot,
    as_snapshot,
)
from waterops.store.memory import MemoryRecordStore
from waterops.store.mongo import MongoRecordStore
from waterops.store.seed import seed_store

logger = logging.getLogger(__name__)

__all__ = [
    "MemoryRecordStore",
    "MongoRecordStore",
    "RecordFilter",
    "RecordStore",
    "SnapshotSource",
    "StoreSnapshot",
    "as_snapshot",
    "build_store",
    "seed_store",
]


def build_store(settings: Settings, clock: Optional[Clock] = None) -> RecordStore:
    """Creates the configured backend, seeding it when empty and enabled."""
    if settings.store_backend == "mongo":
        client = OperationsMongoClient(settings.mongo_uri, settings.db_name)
        store: RecordStore = MongoRecordStore(client.get_db(), clock=clock, client=client)
        store.ensure_indexes()
    else:
        store = MemoryRecordStore(clock=clock)

    logger.info(f"Record store ready (backend: {store.backend_name})")

    if settings.seed_demo_data and store.is_empty():
        seed_store(store)
    return store
