# =======================================================================================
# access_station/services/notification_service.py - Observer Fan-out
# =======================================================================================
import logging
import threading
from collections import deque
from typing import Any, Callable, Deque, List

from ..models.enums import NotificationType
from ..models.schemas import Notification

logger = logging.getLogger(__name__)

Subscriber = Callable[[Notification], None]


class NotificationHub:
    """In-process publish/subscribe for dashboard viewers and other observers."""

    def __init__(self, history_size: int = 200):
        self._lock = threading.Lock()
        self._subscribers: List[Subscriber] = []
        self._history: Deque[Notification] = deque(maxlen=history_size)

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register subscriber; returns a function that unregisters it."""
        with self._lock:
            self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(self, type_: NotificationType, data: Any = None) -> Notification:
        note = Notification(type=type_, data=data)
        with self._lock:
            self._history.append(note)
            subscribers = list(self._subscribers)
        for subscriber in subscribers:
            try:
                subscriber(note)
            except Exception:
                # one broken viewer must not stop the others
                logger.exception("[notify] subscriber failed for %s", type_.value)
        return note

    def recent(self, limit: int = 50) -> List[Notification]:
        with self._lock:
            items = list(self._history)
        return items[-limit:]

    def of_type(self, type_: NotificationType) -> List[Notification]:
        with self._lock:
            return [n for n in self._history if n.type == type_]
