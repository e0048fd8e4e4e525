from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List


@dataclass(frozen=True)
class DocumentSnapshot:
    doc_id: str
    data: Dict[str, Any] = field(default_factory=dict)


SnapshotHandler = Callable[[List[DocumentSnapshot]], None]
ErrorHandler = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class FeedError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = str(code or "").strip() or "feed_error"


class ChangeFeed(ABC):
    """Live query over a whole document collection.

    ``on_snapshot`` receives the complete current document list once after
    ``listen`` and again after every change. ``on_error`` receives failures of
    the underlying store. The returned callable detaches the listener.
    """

    @abstractmethod
    def listen(
        self,
        collection: str,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler,
    ) -> Unsubscribe:
        raise NotImplementedError
