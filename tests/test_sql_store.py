import unittest

from supply_tracker.core import NotificationChannel
from supply_tracker.db import open_database
from supply_tracker.mirror import FeedError, MirrorState, PurchaseRequestMirror, SqlDocumentStore
from supply_tracker.observability import reset_metrics_for_tests
from tests.helpers.temp_db import TempDbSandbox


COLLECTION = "purchaseRequests"


class SqlDocumentStoreTest(unittest.TestCase):
    def setUp(self) -> None:
        reset_metrics_for_tests()
        self._temp_db = TempDbSandbox(prefix="sql_store")
        self.store = SqlDocumentStore(self._temp_db.db_path, poll_interval_seconds=0.1, background=False)
        self.store.init_schema()
        self.snapshots = []
        self.errors = []

    def tearDown(self) -> None:
        self.store.stop_all()
        self._temp_db.cleanup()
        reset_metrics_for_tests()

    def _listen(self):
        return self.store.listen(COLLECTION, self.snapshots.append, self.errors.append)

    def test_crud_round_trip(self) -> None:
        doc_id = self.store.add(COLLECTION, {"status": "Approved"})
        self.store.update(COLLECTION, doc_id, {"initiatedBy": "Jane Smith"})

        self.assertEqual(self.store.get(COLLECTION, doc_id), {"status": "Approved", "initiatedBy": "Jane Smith"})
        self.assertEqual(self.store.count(COLLECTION), 1)
        self.assertTrue(self.store.delete(COLLECTION, doc_id))
        self.assertFalse(self.store.delete(COLLECTION, doc_id))
        self.assertIsNone(self.store.get(COLLECTION, doc_id))
        with self.assertRaises(KeyError):
            self.store.update(COLLECTION, doc_id, {"status": "Cancelled"})

    def test_poll_emits_only_when_collection_changes(self) -> None:
        self.store.set(COLLECTION, "PR-1", {"status": "Approved"})
        self._listen()

        self.assertEqual(self.store.poll_once(), 1)
        self.assertEqual(self.store.poll_once(), 0)
        self.assertEqual([doc.doc_id for doc in self.snapshots[0]], ["PR-1"])

        self.store.set(COLLECTION, "PR-1", {"status": "Dispatched"})
        self.assertEqual(self.store.poll_once(), 1)
        self.assertEqual(self.snapshots[-1][0].data["status"], "Dispatched")

        self.store.set("otherCollection", "X", {})
        self.assertEqual(self.store.poll_once(), 0)

    def test_unsubscribed_listener_is_not_polled(self) -> None:
        unsubscribe = self._listen()
        unsubscribe()

        self.assertEqual(self.store.poll_once(), 0)
        self.assertEqual(self.snapshots, [])

    def test_malformed_document_is_reported_as_error(self) -> None:
        self._listen()
        with open_database(self._temp_db.db_path) as db:
            db.execute(
                "INSERT INTO documents (collection, doc_id, payload_json) VALUES (?, ?, ?)",
                (COLLECTION, "PR-BAD", "{not json"),
            )

        self.store.poll_once()

        self.assertEqual(len(self.errors), 1)
        self.assertIsInstance(self.errors[0], FeedError)
        self.assertEqual(self.errors[0].code, "malformed_document")

    def test_missing_table_surfaces_query_failure(self) -> None:
        with open_database(self._temp_db.db_path) as db:
            db.execute("DROP TABLE documents")
        self._listen()

        self.store.poll_once()

        self.assertEqual(self.errors[0].code, "query_failed")
        self.assertEqual(self.snapshots, [])

    def test_mirror_follows_sql_store(self) -> None:
        state = MirrorState()
        notifications = NotificationChannel()
        mirror = PurchaseRequestMirror(self.store, state, notifications, collection=COLLECTION)
        self.store.set(COLLECTION, "PR-1", {"status": "Approved"})

        mirror.start()
        self.assertTrue(state.loading.get())
        self.store.poll_once()
        self.assertFalse(state.loading.get())
        self.assertEqual([item.id for item in state.purchase_requests.get()], ["PR-1"])

        mirror.stop()
        self.store.set(COLLECTION, "PR-2", {"status": "Approved"})
        self.assertEqual(self.store.poll_once(), 0)
        self.assertEqual(len(state.purchase_requests.get()), 1)


if __name__ == "__main__":
    unittest.main()
