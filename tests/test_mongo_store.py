import re
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from pymongo import ASCENDING, DESCENDING

from waterops.errors import ConcurrentUpdateError, RecordNotFound
from waterops.schemas.records import EntityKind
from waterops.store import MongoRecordStore, RecordFilter
from waterops.store.mongo import COUNTERS_COLLECTION, RECORD_PROJECTION

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def stored_alert(rev=0, is_read=False):
    return {
        "id": 3,
        "type": "pressure",
        "severity": "warning",
        "location": "Pine Street Station 7",
        "message": "High Pressure Detected",
        "timestamp": NOW,
        "is_read": is_read,
        "_rev": rev,
    }


class TestMongoRecordStore(unittest.TestCase):

    def setUp(self):
        # One MagicMock per collection name
        self.collections = {}
        self.mock_db = MagicMock()
        self.mock_db.__getitem__.side_effect = lambda name: self.collections.setdefault(name, MagicMock())
        self.store = MongoRecordStore(self.mock_db, clock=lambda: NOW)

    def test_build_query_structure(self):
        """
        Verify that a RecordFilter becomes an inclusive range on the kind's
        time field, an escaped case-insensitive location match and a status match.
        """
        start = NOW - timedelta(days=7)
        filters = RecordFilter(start_date=start, end_date=NOW, location="Main St. (North)", status="active")

        query = MongoRecordStore.build_query(EntityKind.LEAKS, filters)

        self.assertEqual(query["detected_at"]["$gte"], start)
        self.assertEqual(query["detected_at"]["$lte"], NOW)
        self.assertEqual(query["location"]["$options"], "i")
        self.assertEqual(query["location"]["$regex"], re.escape("Main St. (North)"))
        self.assertEqual(query["status"], "active")

    def test_build_query_ignores_fields_the_kind_lacks(self):
        query = MongoRecordStore.build_query(EntityKind.USAGE, RecordFilter(status="active", unread_only=True))
        self.assertEqual(query, {})

        alerts = MongoRecordStore.build_query(EntityKind.ALERTS, RecordFilter(unread_only=True))
        self.assertEqual(alerts, {"is_read": False})

    def test_list_sorts_newest_first_and_limits(self):
        cursor = self.collections.setdefault("alerts", MagicMock()).find.return_value
        cursor.sort.return_value = cursor
        cursor.limit.return_value = cursor
        cursor.__iter__.return_value = iter([stored_alert()])

        records = self.store.list(EntityKind.ALERTS, RecordFilter(limit=5))

        _, projection = self.collections["alerts"].find.call_args[0]
        self.assertEqual(projection, RECORD_PROJECTION)
        cursor.sort.assert_called_once_with([("timestamp", DESCENDING), ("id", DESCENDING)])
        cursor.limit.assert_called_once_with(5)
        self.assertEqual(records[0].id, 3)

    def test_maintenance_sorted_ascending(self):
        cursor = self.collections.setdefault("maintenance", MagicMock()).find.return_value
        cursor.sort.return_value = cursor
        cursor.__iter__.return_value = iter([])

        self.store.list(EntityKind.MAINTENANCE)

        cursor.sort.assert_called_once_with([("scheduled_date", ASCENDING), ("id", ASCENDING)])
        cursor.limit.assert_not_called()

    def test_create_draws_id_from_counter(self):
        counters = self.collections.setdefault(COUNTERS_COLLECTION, MagicMock())
        counters.find_one_and_update.return_value = {"_id": "alerts", "seq": 12}

        alert = self.store.create(EntityKind.ALERTS, {
            "type": "flow",
            "severity": "warning",
            "location": "Riverside District",
            "message": "Low Flow Detected",
        })

        query, update = counters.find_one_and_update.call_args[0]
        self.assertEqual(query, {"_id": "alerts"})
        self.assertEqual(update, {"$inc": {"seq": 1}})
        self.assertTrue(counters.find_one_and_update.call_args[1]["upsert"])

        self.assertEqual(alert.id, 12)
        self.assertEqual(alert.timestamp, NOW)
        inserted = self.collections["alerts"].insert_one.call_args[0][0]
        self.assertEqual(inserted["id"], 12)
        self.assertEqual(inserted["_rev"], 0)

    def test_update_checks_revision(self):
        alerts = self.collections.setdefault("alerts", MagicMock())
        alerts.find_one.return_value = stored_alert(rev=4)
        alerts.update_one.return_value = MagicMock(matched_count=1)

        updated = self.store.mark_alert_read(3)

        query, update = alerts.update_one.call_args[0]
        self.assertEqual(query, {"id": 3, "_rev": 4})
        self.assertEqual(update["$set"]["_rev"], 5)
        self.assertTrue(update["$set"]["is_read"])
        self.assertTrue(updated.is_read)

    def test_update_handles_documents_without_revision(self):
        doc = stored_alert()
        del doc["_rev"]
        alerts = self.collections.setdefault("alerts", MagicMock())
        alerts.find_one.return_value = doc
        alerts.update_one.return_value = MagicMock(matched_count=1)

        self.store.mark_alert_read(3)

        query, update = alerts.update_one.call_args[0]
        self.assertEqual(query["_rev"], {"$exists": False})
        self.assertEqual(update["$set"]["_rev"], 1)

    def test_update_retries_then_gives_up(self):
        alerts = self.collections.setdefault("alerts", MagicMock())
        alerts.find_one.return_value = stored_alert(rev=1)
        alerts.update_one.return_value = MagicMock(matched_count=0)

        with self.assertRaises(ConcurrentUpdateError) as ctx:
            self.store.mark_alert_read(3)

        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(alerts.update_one.call_count, MongoRecordStore.MAX_UPDATE_ATTEMPTS)

    def test_get_missing_record(self):
        self.collections.setdefault("leaks", MagicMock()).find_one.return_value = None
        with self.assertRaises(RecordNotFound):
            self.store.get_by_id(EntityKind.LEAKS, 8)

    def test_health_check_pings_database(self):
        self.store.health_check()
        self.mock_db.command.assert_called_once_with("ping")

    def test_ensure_indexes(self):
        self.store.ensure_indexes()
        usage = self.collections["water_usage"]
        usage.create_index.assert_any_call([("id", ASCENDING)], unique=True)
        usage.create_index.assert_any_call([("timestamp", DESCENDING)])


if __name__ == '__main__':
    unittest.main()
