"""User-facing notifications (the toasts an operator would see)."""
from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional

LOGGER = logging.getLogger(__name__)

SUCCESS = "success"
INFO = "info"
WARNING = "warning"
ERROR = "error"

_LOG_LEVELS = {
    SUCCESS: logging.INFO,
    INFO: logging.INFO,
    WARNING: logging.WARNING,
    ERROR: logging.ERROR,
}


@dataclass(frozen=True, slots=True)
class Notification:
    level: str
    message: str


Listener = Callable[[Notification], None]


class Notifier:
    """Records notifications, logs them and forwards them to listeners."""

    def __init__(self, *, history_size: int = 100, listeners: Optional[List[Listener]] = None) -> None:
        self._history: Deque[Notification] = deque(maxlen=history_size)
        self._listeners: List[Listener] = list(listeners or [])
        self._lock = threading.Lock()

    @property
    def history(self) -> List[Notification]:
        with self._lock:
            return list(self._history)

    @property
    def last(self) -> Optional[Notification]:
        with self._lock:
            return self._history[-1] if self._history else None

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def notify(self, level: str, message: str) -> Notification:
        notification = Notification(level=level, message=message)
        with self._lock:
            self._history.append(notification)
        LOGGER.log(_LOG_LEVELS.get(level, logging.INFO), "[%s] %s", level, message)
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:  # pragma: no cover
                LOGGER.exception("Notification listener %r failed", listener)
        return notification

    def success(self, message: str) -> Notification:
        return self.notify(SUCCESS, message)

    def info(self, message: str) -> Notification:
        return self.notify(INFO, message)

    def warning(self, message: str) -> Notification:
        return self.notify(WARNING, message)

    def error(self, message: str) -> Notification:
        return self.notify(ERROR, message)

    def clear(self) -> None:
        with self._lock:
            self._history.clear()


__all__ = ["Notification", "Notifier", "SUCCESS", "INFO", "WARNING", "ERROR"]
