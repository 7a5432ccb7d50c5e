import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database

from waterops.config.mongo_client import OperationsMongoClient
from waterops.errors import ConcurrentUpdateError, RecordNotFound
from waterops.schemas.records import EntityKind, RecordModel, spec_for
from waterops.store.base import (
    Clock,
    RecordFilter,
    RecordStore,
    StoreSnapshot,
    apply_patch,
    build_record,
    prepare_new_fields,
)

logger = logging.getLogger(__name__)

COUNTERS_COLLECTION = "counters"

# Exclude MongoDB internals; records only carry schema fields
RECORD_PROJECTION = {"_id": 0, "_rev": 0}


class MongoRecordStore(RecordStore):
    """
    MongoDB-backed store, one collection per entity kind.

    - Ids come from an atomic ``$inc`` on the ``counters`` collection.
    - Every document carries a ``_rev`` counter; updates only apply when
      the revision they read is still current, and retry otherwise.
    """

    backend_name = "mongo"
    MAX_UPDATE_ATTEMPTS = 3

    def __init__(
        self,
        db: Database,
        clock: Optional[Clock] = None,
        client: Optional[OperationsMongoClient] = None,
    ):
        super().__init__(clock)
        self.db = db
        self._client = client

    def _collection(self, kind: EntityKind) -> Collection:
        return self.db[spec_for(kind).collection]

    def ensure_indexes(self) -> None:
        for kind in EntityKind:
            collection = self._collection(kind)
            collection.create_index([("id", ASCENDING)], unique=True)
            collection.create_index([(spec_for(kind).time_field, DESCENDING)])

    def _next_id(self, kind: EntityKind) -> int:
        counter = self.db[COUNTERS_COLLECTION].find_one_and_update(
            {"_id": kind.value},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int(counter["seq"])

    @staticmethod
    def _to_record(kind: EntityKind, document: Mapping[str, Any]) -> RecordModel:
        fields = {k: v for k, v in document.items() if k not in ("_id", "_rev")}
        return spec_for(kind).model.model_validate(fields)

    @staticmethod
    def build_query(kind: EntityKind, filters: Optional[RecordFilter] = None) -> Dict[str, Any]:
        """Translates a RecordFilter into a MongoDB filter document."""
        spec = spec_for(kind)
        query: Dict[str, Any] = {}
        if filters is None:
            return query

        time_range = {}
        if filters.start_date is not None:
            time_range["$gte"] = filters.start_date
        if filters.end_date is not None:
            time_range["$lte"] = filters.end_date
        if time_range:
            query[spec.time_field] = time_range

        if filters.location:
            query["location"] = {"$regex": re.escape(filters.location), "$options": "i"}
        if filters.status and "status" in spec.model.model_fields:
            query["status"] = filters.status
        if filters.unread_only and "is_read" in spec.model.model_fields:
            query["is_read"] = False
        return query

    def list(self, kind: EntityKind, filters: Optional[RecordFilter] = None) -> List[RecordModel]:
        kind = EntityKind.parse(kind)
        spec = spec_for(kind)
        direction = DESCENDING if spec.newest_first else ASCENDING

        cursor = self._collection(kind).find(self.build_query(kind, filters), RECORD_PROJECTION)
        cursor = cursor.sort([(spec.time_field, direction), ("id", direction)])
        if filters is not None and filters.limit is not None:
            cursor = cursor.limit(filters.limit)

        return [self._to_record(kind, doc) for doc in cursor]

    def get_by_id(self, kind: EntityKind, record_id: int) -> RecordModel:
        kind = EntityKind.parse(kind)
        document = self._collection(kind).find_one({"id": record_id}, RECORD_PROJECTION)
        if document is None:
            raise RecordNotFound(f"{kind.value} record {record_id} not found")
        return self._to_record(kind, document)

    def create(self, kind: EntityKind, fields: Mapping[str, Any]) -> RecordModel:
        kind = EntityKind.parse(kind)
        prepared = prepare_new_fields(kind, fields, self.now())

        # Validate before drawing an id so rejected payloads don't consume one
        candidate = build_record(kind, 1, prepared)
        record = candidate.model_copy(update={"id": self._next_id(kind)})

        self._collection(kind).insert_one({**record.model_dump(), "_rev": 0})
        logger.info(f"Created {kind.value} record {record.id}")
        return record

    def update(self, kind: EntityKind, record_id: int, fields: Mapping[str, Any]) -> RecordModel:
        kind = EntityKind.parse(kind)
        collection = self._collection(kind)

        for attempt in range(1, self.MAX_UPDATE_ATTEMPTS + 1):
            document = collection.find_one({"id": record_id}, {"_id": 0})
            if document is None:
                raise RecordNotFound(f"{kind.value} record {record_id} not found")

            revision = document.get("_rev", 0)
            # Documents written outside this store may not carry a revision yet
            expected_rev = revision if "_rev" in document else {"$exists": False}
            current = self._to_record(kind, document)
            updated = apply_patch(kind, current, fields, self.now())

            result = collection.update_one(
                {"id": record_id, "_rev": expected_rev},
                {"$set": {**updated.model_dump(), "_rev": revision + 1}},
            )
            if result.matched_count == 1:
                logger.info(f"Updated {kind.value} record {record_id} (rev {revision + 1})")
                return updated

            logger.warning(
                f"Concurrent change on {kind.value} record {record_id}, retrying "
                f"({attempt}/{self.MAX_UPDATE_ATTEMPTS})"
            )

        raise ConcurrentUpdateError(
            f"{kind.value} record {record_id} changed during update; please retry"
        )

    def snapshot(self) -> StoreSnapshot:
        # Small bounded collections: read each kind once
        records = {kind: self.list(kind) for kind in EntityKind}
        return StoreSnapshot(records, taken_at=self.now())

    def health_check(self) -> None:
        self.db.command("ping")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
