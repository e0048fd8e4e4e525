import unittest

from supply_tracker.core import NotificationChannel
from supply_tracker.fixtures import demo_purchase_requests, seed_store
from supply_tracker.mirror import FeedError, InMemoryDocumentStore, MirrorState, PurchaseRequestMirror
from supply_tracker.observability import metrics_snapshot, reset_metrics_for_tests


COLLECTION = "purchaseRequests"
NOW_MS = 1_700_000_000_000


class PurchaseRequestMirrorTest(unittest.TestCase):
    def setUp(self) -> None:
        reset_metrics_for_tests()
        self.store = InMemoryDocumentStore()
        self.state = MirrorState()
        self.notifications = NotificationChannel()
        self.mirror = PurchaseRequestMirror(self.store, self.state, self.notifications, collection=COLLECTION)
        self.raised = []
        self.notifications.subscribe(lambda state: self.raised.append(state) if state.show else None)

    def tearDown(self) -> None:
        self.mirror.stop()
        reset_metrics_for_tests()

    def _ids(self):
        return [item.id for item in self.state.purchase_requests.get()]

    def test_loading_starts_true_and_clears_after_first_batch(self) -> None:
        store = InMemoryDocumentStore(autoflush=False)
        mirror = PurchaseRequestMirror(store, self.state, self.notifications, collection=COLLECTION)
        loading_values = []
        self.state.loading.subscribe(loading_values.append)

        mirror.start()
        self.assertTrue(self.state.loading.get())

        store.flush()
        self.assertFalse(self.state.loading.get())
        self.assertEqual(self.state.purchase_requests.get(), ())
        self.assertEqual(loading_values[-2:], [True, False])
        mirror.stop()

    def test_each_batch_replaces_the_collection(self) -> None:
        documents = demo_purchase_requests(now_ms=NOW_MS)
        self.store.set(COLLECTION, "PR-2023-001", documents["PR-2023-001"])
        self.store.set(COLLECTION, "PR-2023-002", documents["PR-2023-002"])
        self.mirror.start()
        self.assertEqual(sorted(self._ids()), ["PR-2023-001", "PR-2023-002"])

        self.store.delete(COLLECTION, "PR-2023-001")
        self.assertEqual(self._ids(), ["PR-2023-002"])

        self.store.update(COLLECTION, "PR-2023-002", {"status": "Completed"})
        self.assertEqual(self.mirror.find_request("PR-2023-002").status, "Completed")
        self.assertIsNone(self.mirror.find_request("PR-2023-001"))
        self.assertEqual(metrics_snapshot()["mirror"]["batches_total"], 3)

    def test_payload_id_never_shadows_document_identity(self) -> None:
        with self.assertLogs("supply_tracker", level="WARNING") as captured:
            self.store.set(COLLECTION, "doc-1", {"id": "other", "status": "Approved"})
            self.mirror.start()

        self.assertEqual(self._ids(), ["doc-1"])
        self.assertTrue(any("mirror_document_id_shadowed" in line for line in captured.output))

    def test_feed_error_keeps_collection_and_notifies_once(self) -> None:
        seed_store(self.store, COLLECTION, now_ms=NOW_MS)
        self.mirror.start()
        before = self.state.purchase_requests.get()

        self.store.fail(COLLECTION)

        self.assertIs(self.state.purchase_requests.get(), before)
        self.assertFalse(self.state.loading.get())
        self.assertEqual(len(self.raised), 1)
        self.assertEqual(self.raised[0].title, "Data Error")
        self.assertEqual(self.raised[0].message, "Could not load purchase requests from the database.")
        self.assertEqual(metrics_snapshot()["mirror"]["feed_errors_total"], 1)

    def test_unmappable_document_is_skipped_and_the_rest_applied(self) -> None:
        self.store.set(COLLECTION, "PR-1", {"status": "Approved"})
        self.mirror.start()

        with self.assertLogs("supply_tracker", level="WARNING") as captured:
            self.store.set(
                COLLECTION,
                "PR-2",
                {"skus": [{"sku": "A", "vendors": [{"vendorId": "V", "poStatus": "Lost"}]}]},
            )
        self.store.set(COLLECTION, "PR-3", {"status": "Completed"})

        self.assertEqual(sorted(self._ids()), ["PR-1", "PR-3"])
        self.assertEqual(len(self.raised), 1)
        self.assertEqual(self.raised[0].title, "Data Error")
        self.assertTrue(any("mirror_document_rejected" in line for line in captured.output))
        self.assertEqual(metrics_snapshot()["mirror"]["rejected_documents_total"], 2)
        self.assertEqual(metrics_snapshot()["mirror"]["feed_errors_total"], 0)

        self.store.set(COLLECTION, "PR-2", {"status": "Approved"})
        self.assertEqual(sorted(self._ids()), ["PR-1", "PR-2", "PR-3"])
        self.assertEqual(len(self.raised), 1)

    def test_stop_ignores_deliveries_already_queued(self) -> None:
        store = InMemoryDocumentStore(autoflush=False)
        mirror = PurchaseRequestMirror(store, self.state, self.notifications, collection=COLLECTION)
        subscription = mirror.start()
        store.flush()

        store.set(COLLECTION, "PR-1", {"status": "Approved"})
        store.fail(COLLECTION)
        self.assertEqual(store.pending_deliveries, 2)
        subscription()
        subscription()
        store.flush()

        self.assertFalse(subscription.active)
        self.assertEqual(self.state.purchase_requests.get(), ())
        self.assertEqual(self.raised, [])
        self.assertEqual(store.listener_count, 0)
        self.assertEqual(metrics_snapshot()["mirror"]["stale_callbacks_total"], 2)

    def test_restart_detaches_previous_listener(self) -> None:
        first = self.mirror.start()
        second = self.mirror.start()

        self.assertFalse(first.active)
        self.assertTrue(second.active)
        self.assertEqual(self.store.listener_count, 1)

        first()
        self.assertTrue(second.active)
        self.store.set(COLLECTION, "PR-1", {"status": "Approved"})
        self.assertEqual(self._ids(), ["PR-1"])

    def test_collection_is_isolated(self) -> None:
        self.mirror.start()
        self.store.set("otherCollection", "X-1", {"status": "Approved"})
        self.assertEqual(self._ids(), [])

    def test_feed_error_defaults_code(self) -> None:
        self.assertEqual(FeedError("boom").code, "feed_error")
        self.assertEqual(FeedError("boom", code="unavailable").code, "unavailable")


if __name__ == "__main__":
    unittest.main()
