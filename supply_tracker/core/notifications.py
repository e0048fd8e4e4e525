from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict

from supply_tracker.core.observable import ObservableValue, Subscriber, Unsubscribe
from supply_tracker.observability import observe_notification


@dataclass(frozen=True)
class NotificationState:
    show: bool = False
    title: str = ""
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"show": self.show, "title": self.title, "message": self.message}


class NotificationChannel:
    """Single-slot broadcast of user-facing messages.

    Holds at most one notification; ``notify`` overwrites whatever is pending.
    Hiding it again is the consumer's job (``dismiss``).
    """

    def __init__(self) -> None:
        self._state: ObservableValue[NotificationState] = ObservableValue(NotificationState(), name="notification")
        self._logger = logging.getLogger("supply_tracker")

    @property
    def current(self) -> NotificationState:
        return self._state.get()

    def notify(self, title: str, message: str) -> None:
        self._state.set(NotificationState(show=True, title=str(title), message=str(message)))
        observe_notification(title)
        self._logger.info("notification_raised", extra={"title": title})

    def dismiss(self) -> None:
        self._state.update(lambda state: replace(state, show=False))

    def subscribe(self, subscriber: Subscriber) -> Unsubscribe:
        return self._state.subscribe(subscriber)
