from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import Dict, List, Tuple

from supply_tracker.core.notifications import NotificationChannel
from supply_tracker.core.observable import ObservableValue
from supply_tracker.domain.models import PurchaseRequest
from supply_tracker.mirror.feed import ChangeFeed, DocumentSnapshot, Unsubscribe
from supply_tracker.observability import (
    observe_mirror_batch,
    observe_mirror_feed_error,
    observe_mirror_rejected_documents,
    observe_mirror_stale_callback,
)
from supply_tracker.ui_strings import error_message, notification_title


DEFAULT_COLLECTION = "purchaseRequests"


@dataclass
class MirrorState:
    purchase_requests: ObservableValue[Tuple[PurchaseRequest, ...]] = field(
        default_factory=lambda: ObservableValue((), name="purchase_requests")
    )
    loading: ObservableValue[bool] = field(default_factory=lambda: ObservableValue(True, name="loading"))


class MirrorSubscription:
    def __init__(self, mirror: "PurchaseRequestMirror", token: int) -> None:
        self._mirror = mirror
        self._token = token

    @property
    def token(self) -> int:
        return self._token

    @property
    def active(self) -> bool:
        return self._mirror._is_current(self._token)

    def __call__(self) -> None:
        self._mirror._stop_token(self._token)


class PurchaseRequestMirror:
    """Keeps ``state.purchase_requests`` equal to the remote collection.

    Every batch from the feed replaces the whole collection. Feed failures
    keep the last good collection and raise a notification instead. Documents
    that cannot be mapped are left out of the batch and logged; the first
    batch that rejects a given document also raises a notification. Each
    ``start`` opens a new generation; callbacks from older generations are
    dropped, including deliveries already queued when ``stop`` ran.
    """

    def __init__(
        self,
        feed: ChangeFeed,
        state: MirrorState,
        notifications: NotificationChannel,
        collection: str = DEFAULT_COLLECTION,
    ) -> None:
        self.feed = feed
        self.state = state
        self.notifications = notifications
        self.collection = collection
        self._lock = RLock()
        self._generation = 0
        self._active_token: int | None = None
        self._unsubscribe: Unsubscribe | None = None
        self._rejected_ids: frozenset = frozenset()
        self._logger = logging.getLogger("supply_tracker")

    def start(self) -> MirrorSubscription:
        with self._lock:
            self._detach()
            self._generation += 1
            token = self._generation
            self._active_token = token
            self.state.loading.set(True)
            self._rejected_ids = frozenset()
            self._logger.info("mirror_started", extra={"collection": self.collection, "generation": token})
            unsubscribe = self.feed.listen(
                self.collection,
                lambda documents: self._handle_snapshot(token, documents),
                lambda error: self._handle_error(token, error),
            )
            if self._active_token == token:
                self._unsubscribe = unsubscribe
            else:
                unsubscribe()
        return MirrorSubscription(self, token)

    def stop(self) -> None:
        with self._lock:
            if self._active_token is None:
                return
            self._detach()
            self._logger.info("mirror_stopped", extra={"collection": self.collection})

    @property
    def running(self) -> bool:
        with self._lock:
            return self._active_token is not None

    def snapshot(self) -> Tuple[PurchaseRequest, ...]:
        return self.state.purchase_requests.get()

    def find_request(self, request_id: str) -> PurchaseRequest | None:
        normalized = str(request_id or "").strip()
        if not normalized:
            return None
        for purchase_request in self.snapshot():
            if purchase_request.id == normalized:
                return purchase_request
        return None

    def _is_current(self, token: int) -> bool:
        with self._lock:
            return self._active_token == token

    def _stop_token(self, token: int) -> None:
        with self._lock:
            if self._active_token == token:
                self.stop()

    def _detach(self) -> None:
        self._active_token = None
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    def _handle_snapshot(self, token: int, documents: List[DocumentSnapshot]) -> None:
        with self._lock:
            if self._active_token != token:
                observe_mirror_stale_callback()
                return
            requests: List[PurchaseRequest] = []
            rejected: Dict[str, str] = {}
            for document in documents:
                try:
                    requests.append(self._map_document(document))
                except ValueError as exc:
                    rejected[document.doc_id] = str(exc)
            self._reject_documents(rejected)
            self.state.purchase_requests.set(tuple(requests))
            self.state.loading.set(False)
            observe_mirror_batch(len(requests))
            self._logger.info(
                "mirror_batch_applied",
                extra={
                    "collection": self.collection,
                    "document_count": len(requests),
                    "rejected_count": len(rejected),
                },
            )

    def _reject_documents(self, rejected: Dict[str, str]) -> None:
        current = frozenset(rejected)
        if not current:
            self._rejected_ids = current
            return
        observe_mirror_rejected_documents(len(rejected))
        for doc_id, detail in sorted(rejected.items()):
            self._logger.warning(
                "mirror_document_rejected",
                extra={"collection": self.collection, "doc_id": doc_id, "error_detail": detail},
            )
        # only newly rejected documents raise a notification
        if not current <= self._rejected_ids:
            self.notifications.notify(notification_title("data_error"), error_message("feed_unavailable"))
        self._rejected_ids = current

    def _handle_error(self, token: int, error: Exception) -> None:
        with self._lock:
            if self._active_token != token:
                observe_mirror_stale_callback()
                return
            self._apply_error(error)

    def _apply_error(self, error: Exception) -> None:
        code = getattr(error, "code", None) or "feed_error"
        observe_mirror_feed_error(code)
        self._logger.error(
            "mirror_feed_error",
            extra={"collection": self.collection, "error_code": code, "error_detail": str(error)},
        )
        self.notifications.notify(notification_title("data_error"), error_message("feed_unavailable"))
        self.state.loading.set(False)

    def _map_document(self, document: DocumentSnapshot) -> PurchaseRequest:
        payload_id = document.data.get("id")
        if payload_id is not None and str(payload_id) != document.doc_id:
            self._logger.warning(
                "mirror_document_id_shadowed",
                extra={"doc_id": document.doc_id, "payload_id": str(payload_id)},
            )
        return PurchaseRequest.from_document(document.doc_id, document.data)
