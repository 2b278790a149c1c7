"""User-facing notices and the refresh trigger bumped after mutations."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Literal, Optional

LOGGER = logging.getLogger(__name__)

NoticeLevel = Literal["info", "success", "warning", "error"]

NoticeHandler = Callable[["Notice"], None]
RefreshListener = Callable[[int, Optional[str]], None]

_LOG_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(slots=True)
class Notice:
    """A message meant for the person driving the operation."""

    level: NoticeLevel
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier:
    """Collect notices and announce that stored data changed.

    ``refresh_trigger`` increases by one after every mutation; listeners
    receive the new value and the folder path that was touched, if known.
    """

    def __init__(self, *, history: int = 100) -> None:
        self._lock = threading.Lock()
        self._history = history
        self._notices: List[Notice] = []
        self._handlers: List[NoticeHandler] = []
        self._listeners: List[RefreshListener] = []
        self._trigger = 0

    @property
    def refresh_trigger(self) -> int:
        """Return the current trigger value."""
        with self._lock:
            return self._trigger

    @property
    def notices(self) -> List[Notice]:
        """Return the retained notices, oldest first."""
        with self._lock:
            return list(self._notices)

    def add_handler(self, handler: NoticeHandler) -> Callable[[], None]:
        """Register ``handler`` for future notices and return a remover."""
        with self._lock:
            self._handlers.append(handler)

        def _remove() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return _remove

    def subscribe(self, listener: RefreshListener) -> Callable[[], None]:
        """Register a refresh listener and return a remover."""
        with self._lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove

    def notify(self, level: NoticeLevel, message: str) -> Notice:
        """Record a notice and hand it to every handler."""
        notice = Notice(level=level, message=message)
        with self._lock:
            self._notices.append(notice)
            del self._notices[: -self._history]
            handlers = list(self._handlers)
        LOGGER.log(_LOG_LEVELS[level], message)
        for handler in handlers:
            handler(notice)
        return notice

    def bump(self, prefix: Optional[str] = None) -> int:
        """Advance the refresh trigger after a mutation under ``prefix``."""
        with self._lock:
            self._trigger += 1
            value = self._trigger
            listeners = list(self._listeners)
        for listener in listeners:
            listener(value, prefix)
        return value

    def clear(self) -> None:
        """Forget retained notices."""
        with self._lock:
            self._notices = []


__all__ = ["Notice", "NoticeLevel", "Notifier", "NoticeHandler", "RefreshListener"]
