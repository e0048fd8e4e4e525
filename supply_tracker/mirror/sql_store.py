from __future__ import annotations

import json
import threading
import uuid
from threading import RLock
from typing import Any, Dict, List, Tuple

from supply_tracker.db import init_document_schema, open_database
from supply_tracker.mirror.feed import (
    ChangeFeed,
    DocumentSnapshot,
    ErrorHandler,
    FeedError,
    SnapshotHandler,
    Unsubscribe,
)
from supply_tracker.observability import bind_request_id


_Fingerprint = Tuple[Tuple[str, int], ...]


def _row_value(row, key: str, index: int):
    return row[key] if isinstance(row, dict) else row[index]


class _CollectionPoller:
    def __init__(
        self,
        store: "SqlDocumentStore",
        collection: str,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler,
        interval_seconds: float,
    ) -> None:
        self.store = store
        self.collection = collection
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.interval_seconds = interval_seconds
        self._last_fingerprint: _Fingerprint | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._poll_lock = threading.Lock()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(
            target=self._run_loop,
            name=f"feed-poller-{self.collection}",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()

    def _run_loop(self) -> None:
        with bind_request_id(f"feed-poller-{self.collection}"):
            while not self._stop_event.is_set():
                self.poll()
                self._stop_event.wait(self.interval_seconds)

    def poll(self) -> bool:
        with self._poll_lock:
            if self._stop_event.is_set():
                return False
            try:
                fingerprint, snapshot = self.store._read_collection(self.collection)
            except Exception as exc:  # noqa: BLE001
                self._last_fingerprint = None
                self.on_error(exc if isinstance(exc, FeedError) else FeedError(str(exc), code="query_failed"))
                return True
            if fingerprint == self._last_fingerprint:
                return False
            self._last_fingerprint = fingerprint
            self.on_snapshot(snapshot)
            return True


class SqlDocumentStore(ChangeFeed):
    """Document collections persisted in SQLite or PostgreSQL.

    Listeners are fed by polling: a snapshot is pushed whenever the set of
    ``(doc_id, revision)`` pairs of the collection changes.
    """

    def __init__(
        self,
        db_path: str,
        *,
        poll_interval_seconds: float = 2.0,
        background: bool = True,
    ) -> None:
        self.db_path = str(db_path)
        self.poll_interval_seconds = max(0.05, float(poll_interval_seconds))
        self.background = background
        self._lock = RLock()
        self._pollers: List[_CollectionPoller] = []

    def init_schema(self) -> None:
        with open_database(self.db_path) as db:
            init_document_schema(db)

    def listen(
        self,
        collection: str,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler,
    ) -> Unsubscribe:
        poller = _CollectionPoller(self, collection, on_snapshot, on_error, self.poll_interval_seconds)
        with self._lock:
            self._pollers.append(poller)
        if self.background:
            poller.start()

        def unsubscribe() -> None:
            poller.stop()
            with self._lock:
                if poller in self._pollers:
                    self._pollers.remove(poller)

        return unsubscribe

    def poll_once(self) -> int:
        with self._lock:
            pollers = list(self._pollers)
        emitted = 0
        for poller in pollers:
            if poller.poll():
                emitted += 1
        return emitted

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex[:20]
        self.set(collection, doc_id, data)
        return doc_id

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        normalized_id = str(doc_id or "").strip()
        if not normalized_id:
            raise ValueError("doc_id is required")
        payload_json = json.dumps(dict(data or {}), ensure_ascii=True, separators=(",", ":"))
        with open_database(self.db_path) as db:
            db.execute(
                """
                INSERT INTO documents (collection, doc_id, payload_json, revision, updated_at)
                VALUES (?, ?, ?, 1, CURRENT_TIMESTAMP)
                ON CONFLICT(collection, doc_id) DO UPDATE SET
                    payload_json = excluded.payload_json,
                    revision = documents.revision + 1,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (collection, normalized_id, payload_json),
            )

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        current = self.get(collection, doc_id)
        if current is None:
            raise KeyError(f"document {doc_id} not found in {collection}")
        current.update(dict(fields or {}))
        self.set(collection, doc_id, current)

    def delete(self, collection: str, doc_id: str) -> bool:
        with open_database(self.db_path) as db:
            cursor = db.execute(
                "DELETE FROM documents WHERE collection = ? AND doc_id = ?",
                (collection, doc_id),
            )
            return int(getattr(cursor, "rowcount", 0) or 0) > 0

    def get(self, collection: str, doc_id: str) -> Dict[str, Any] | None:
        with open_database(self.db_path) as db:
            row = db.execute(
                "SELECT payload_json FROM documents WHERE collection = ? AND doc_id = ?",
                (collection, doc_id),
            ).fetchone()
        if row is None:
            return None
        return json.loads(_row_value(row, "payload_json", 0))

    def count(self, collection: str) -> int:
        with open_database(self.db_path) as db:
            row = db.execute(
                "SELECT COUNT(*) AS total FROM documents WHERE collection = ?",
                (collection,),
            ).fetchone()
        return int(_row_value(row, "total", 0) or 0)

    def _read_collection(self, collection: str) -> tuple[_Fingerprint, List[DocumentSnapshot]]:
        with open_database(self.db_path) as db:
            rows = db.execute(
                """
                SELECT doc_id, revision, payload_json
                FROM documents
                WHERE collection = ?
                ORDER BY doc_id
                """,
                (collection,),
            ).fetchall()
        fingerprint: List[Tuple[str, int]] = []
        snapshot: List[DocumentSnapshot] = []
        for row in rows:
            doc_id = str(_row_value(row, "doc_id", 0))
            revision = int(_row_value(row, "revision", 1))
            try:
                data = json.loads(_row_value(row, "payload_json", 2))
            except ValueError as exc:
                raise FeedError(f"document {doc_id} holds malformed JSON", code="malformed_document") from exc
            if not isinstance(data, dict):
                raise FeedError(f"document {doc_id} is not an object", code="malformed_document")
            fingerprint.append((doc_id, revision))
            snapshot.append(DocumentSnapshot(doc_id=doc_id, data=data))
        return tuple(fingerprint), snapshot

    def stop_all(self) -> None:
        with self._lock:
            pollers = list(self._pollers)
            self._pollers.clear()
        for poller in pollers:
            poller.stop()
