import logging
import threading
from typing import Any, Dict, List, Mapping, Optional

from waterops.errors import RecordNotFound
from waterops.schemas.records import EntityKind, RecordModel
from waterops.store.base import (
    Clock,
    RecordFilter,
    RecordStore,
    StoreSnapshot,
    apply_patch,
    build_record,
    filter_records,
    prepare_new_fields,
)

logger = logging.getLogger(__name__)


class MemoryRecordStore(RecordStore):
    """
    In-process store backed by one dict per entity kind.
    A single lock serializes creates and updates, so concurrent patches to
    the same record never overwrite each other.
    """

    backend_name = "memory"

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__(clock)
        self._lock = threading.RLock()
        self._records: Dict[EntityKind, Dict[int, RecordModel]] = {kind: {} for kind in EntityKind}
        self._next_ids: Dict[EntityKind, int] = {kind: 1 for kind in EntityKind}

    def list(self, kind: EntityKind, filters: Optional[RecordFilter] = None) -> List[RecordModel]:
        kind = EntityKind.parse(kind)
        with self._lock:
            records = list(self._records[kind].values())
        return filter_records(kind, records, filters)

    def get_by_id(self, kind: EntityKind, record_id: int) -> RecordModel:
        kind = EntityKind.parse(kind)
        with self._lock:
            record = self._records[kind].get(record_id)
        if record is None:
            raise RecordNotFound(f"{kind.value} record {record_id} not found")
        return record

    def create(self, kind: EntityKind, fields: Mapping[str, Any]) -> RecordModel:
        kind = EntityKind.parse(kind)
        prepared = prepare_new_fields(kind, fields, self.now())

        with self._lock:
            record = build_record(kind, self._next_ids[kind], prepared)
            self._records[kind][record.id] = record
            self._next_ids[kind] += 1

        logger.info(f"Created {kind.value} record {record.id}")
        return record

    def update(self, kind: EntityKind, record_id: int, fields: Mapping[str, Any]) -> RecordModel:
        kind = EntityKind.parse(kind)
        with self._lock:
            current = self.get_by_id(kind, record_id)
            updated = apply_patch(kind, current, fields, self.now())
            self._records[kind][record_id] = updated

        logger.info(f"Updated {kind.value} record {record_id}")
        return updated

    def snapshot(self) -> StoreSnapshot:
        with self._lock:
            records = {kind: list(by_id.values()) for kind, by_id in self._records.items()}
        return StoreSnapshot(records, taken_at=self.now())
