from supply_tracker.core.notifications import NotificationChannel, NotificationState
from supply_tracker.core.observable import ObservableValue

__all__ = [
    "NotificationChannel",
    "NotificationState",
    "ObservableValue",
]
