from supply_tracker.mirror.feed import ChangeFeed, DocumentSnapshot, FeedError
from supply_tracker.mirror.memory_store import InMemoryDocumentStore
from supply_tracker.mirror.service import MirrorState, MirrorSubscription, PurchaseRequestMirror
from supply_tracker.mirror.sql_store import SqlDocumentStore

__all__ = [
    "ChangeFeed",
    "DocumentSnapshot",
    "FeedError",
    "InMemoryDocumentStore",
    "MirrorState",
    "MirrorSubscription",
    "PurchaseRequestMirror",
    "SqlDocumentStore",
]
