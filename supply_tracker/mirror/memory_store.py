from __future__ import annotations

import copy
import uuid
from collections import deque
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Deque, Dict, List

from supply_tracker.mirror.feed import (
    ChangeFeed,
    DocumentSnapshot,
    ErrorHandler,
    FeedError,
    SnapshotHandler,
    Unsubscribe,
)


@dataclass(eq=False)
class _Listener:
    collection: str
    on_snapshot: SnapshotHandler
    on_error: ErrorHandler


class InMemoryDocumentStore(ChangeFeed):
    """Document collections kept in process memory.

    With ``autoflush`` (the default) every mutation is pushed to listeners
    before the call returns. Without it deliveries queue up until ``flush``,
    which mimics callbacks already scheduled on an event loop; detaching a
    listener does not withdraw deliveries that are already queued.
    """

    def __init__(self, *, autoflush: bool = True) -> None:
        self._lock = RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._listeners: List[_Listener] = []
        self._pending: Deque[Callable[[], None]] = deque()
        self.autoflush = autoflush

    def listen(
        self,
        collection: str,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler,
    ) -> Unsubscribe:
        listener = _Listener(collection=collection, on_snapshot=on_snapshot, on_error=on_error)
        with self._lock:
            self._listeners.append(listener)
            self._schedule_snapshot(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        self._maybe_flush()
        return unsubscribe

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex[:20]
        self.set(collection, doc_id, data)
        return doc_id

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        normalized_id = str(doc_id or "").strip()
        if not normalized_id:
            raise ValueError("doc_id is required")
        with self._lock:
            self._collections.setdefault(collection, {})[normalized_id] = copy.deepcopy(dict(data or {}))
            self._broadcast(collection)
        self._maybe_flush()

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        with self._lock:
            documents = self._collections.get(collection, {})
            if doc_id not in documents:
                raise KeyError(f"document {doc_id} not found in {collection}")
            documents[doc_id].update(copy.deepcopy(dict(fields or {})))
            self._broadcast(collection)
        self._maybe_flush()

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            removed = self._collections.get(collection, {}).pop(doc_id, None) is not None
            if removed:
                self._broadcast(collection)
        self._maybe_flush()
        return removed

    def get(self, collection: str, doc_id: str) -> Dict[str, Any] | None:
        with self._lock:
            data = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(data) if data is not None else None

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._collections.get(collection, {}))

    def fail(self, collection: str, error: Exception | None = None) -> None:
        failure = error or FeedError(f"listener on {collection} failed", code="unavailable")
        with self._lock:
            for listener in list(self._listeners):
                if listener.collection != collection:
                    continue
                self._pending.append(lambda target=listener: target.on_error(failure))
        self._maybe_flush()

    def flush(self) -> int:
        delivered = 0
        while True:
            with self._lock:
                if not self._pending:
                    return delivered
                delivery = self._pending.popleft()
            delivery()
            delivered += 1

    @property
    def pending_deliveries(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def _snapshot(self, collection: str) -> List[DocumentSnapshot]:
        documents = self._collections.get(collection, {})
        return [DocumentSnapshot(doc_id=doc_id, data=copy.deepcopy(data)) for doc_id, data in documents.items()]

    def _schedule_snapshot(self, listener: _Listener) -> None:
        snapshot = self._snapshot(listener.collection)
        self._pending.append(lambda: listener.on_snapshot(snapshot))

    def _broadcast(self, collection: str) -> None:
        for listener in list(self._listeners):
            if listener.collection == collection:
                self._schedule_snapshot(listener)

    def _maybe_flush(self) -> None:
        if self.autoflush:
            self.flush()
