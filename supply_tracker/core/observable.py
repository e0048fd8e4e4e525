from __future__ import annotations

import logging
from threading import RLock
from typing import Callable, Generic, List, TypeVar


T = TypeVar("T")

Subscriber = Callable[[T], None]
Unsubscribe = Callable[[], None]


class ObservableValue(Generic[T]):
    """Holds one value and pushes every replacement to its subscribers.

    New subscribers receive the current value right away, then each later
    value in the order ``set`` was called. A subscriber that raises is logged
    and the remaining subscribers still run.
    """

    def __init__(self, initial: T, *, name: str = "value") -> None:
        self._lock = RLock()
        self._value = initial
        self._subscribers: List[Subscriber] = []
        self._name = name
        self._logger = logging.getLogger("supply_tracker")

    def get(self) -> T:
        with self._lock:
            return self._value

    def set(self, value: T) -> None:
        with self._lock:
            self._value = value
            subscribers = list(self._subscribers)
            for subscriber in subscribers:
                self._deliver(subscriber, value)

    def update(self, updater: Callable[[T], T]) -> None:
        with self._lock:
            self.set(updater(self._value))

    def subscribe(self, subscriber: Subscriber) -> Unsubscribe:
        with self._lock:
            self._subscribers.append(subscriber)
            self._deliver(subscriber, self._value)

        def unsubscribe() -> None:
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def _deliver(self, subscriber: Subscriber, value: T) -> None:
        try:
            subscriber(value)
        except Exception:  # noqa: BLE001
            self._logger.exception("observable_subscriber_failed", extra={"observable": self._name})
