from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from flask import current_app

from supply_tracker.application.supply_input_service import InMemorySupplyInputRepository, SupplyInputService
from supply_tracker.core.notifications import NotificationChannel
from supply_tracker.fixtures import demo_supply_inputs, seed_store
from supply_tracker.mirror.feed import ChangeFeed
from supply_tracker.mirror.memory_store import InMemoryDocumentStore
from supply_tracker.mirror.service import MirrorState, PurchaseRequestMirror
from supply_tracker.mirror.sql_store import SqlDocumentStore
from supply_tracker.views.classifier import OrderViews, build_order_views


EXTENSION_KEY = "supply_tracker"


@dataclass
class TrackerServices:
    store: ChangeFeed
    state: MirrorState
    notifications: NotificationChannel
    mirror: PurchaseRequestMirror
    supply_inputs: SupplyInputService
    collection: str

    def deliver_pending(self) -> int:
        """Runs feed deliveries that are waiting for the next tick."""
        if isinstance(self.store, InMemoryDocumentStore) and not self.store.autoflush:
            return self.store.flush()
        if isinstance(self.store, SqlDocumentStore) and not self.store.background:
            return self.store.poll_once()
        return 0

    def order_views(self) -> OrderViews:
        return build_order_views(self.mirror.snapshot())

    def shutdown(self) -> None:
        self.mirror.stop()
        if isinstance(self.store, SqlDocumentStore):
            self.store.stop_all()


def build_document_store(config: Mapping[str, Any]) -> ChangeFeed:
    backend = str(config.get("DOCUMENT_STORE") or "memory").strip().lower()
    if backend == "sql":
        store = SqlDocumentStore(
            config["DB_PATH"],
            poll_interval_seconds=float(config.get("FEED_POLL_INTERVAL_SECONDS", 2.0)),
            background=bool(config.get("FEED_POLL_IN_BACKGROUND", True)),
        )
        store.init_schema()
        return store
    if backend == "memory":
        return InMemoryDocumentStore(autoflush=not bool(config.get("MEMORY_STORE_DEFERRED", True)))
    raise RuntimeError(f"Unsupported DOCUMENT_STORE: {backend}")


def build_services(config: Mapping[str, Any]) -> TrackerServices:
    collection = str(config.get("PURCHASE_REQUESTS_COLLECTION") or "purchaseRequests")
    store = build_document_store(config)
    seed_demo = bool(config.get("SEED_DEMO_DATA", False))
    if seed_demo and store.count(collection) == 0:
        seeded = seed_store(store, collection)
        logging.getLogger("supply_tracker").info(
            "demo_data_seeded", extra={"collection": collection, "document_count": seeded}
        )

    state = MirrorState()
    notifications = NotificationChannel()
    mirror = PurchaseRequestMirror(store, state, notifications, collection=collection)
    repository = InMemorySupplyInputRepository(demo_supply_inputs() if seed_demo else ())
    supply_inputs = SupplyInputService(
        repository,
        mirror.snapshot,
        latency_enabled=bool(config.get("SUPPLY_API_LATENCY_ENABLED", True)),
        latency_scale=float(config.get("SUPPLY_API_LATENCY_SCALE", 1.0)),
    )
    return TrackerServices(
        store=store,
        state=state,
        notifications=notifications,
        mirror=mirror,
        supply_inputs=supply_inputs,
        collection=collection,
    )


def get_services(app=None) -> TrackerServices:
    target = app or current_app
    return target.extensions[EXTENSION_KEY]
