"""
Session-lifetime queue of transient user-facing messages.

Every component that reports an outcome receives the same `NotificationQueue`
instance explicitly; the queue owns the live set and retires each message once
its time-to-live elapses.
"""

from __future__ import annotations

import threading
import uuid
from typing import Any, Callable, List, Optional

from agent_panel.shared.data_types import DEFAULT_NOTIFICATION_TTL_MS, Notification
from agent_panel.utils.logger import StructuredLogger

Scheduler = Callable[[float, Callable[[], None]], Any]
Listener = Callable[[List[Notification]], None]


def timer_scheduler(delay_s: float, callback: Callable[[], None]) -> threading.Timer:
    """Run `callback` once after `delay_s` seconds on a daemon timer thread."""
    timer = threading.Timer(delay_s, callback)
    timer.daemon = True
    timer.start()
    return timer


class NotificationQueue:
    """
    Ordered live set of notifications (insertion order is display order).

    Parameters:
        scheduler: Callable `(delay_seconds, callback)` used to defer removal.
            Defaults to a daemon `threading.Timer`.
        default_ttl_ms: TTL applied when `push` receives none.
    """

    def __init__(
        self,
        *,
        scheduler: Optional[Scheduler] = None,
        default_ttl_ms: int = DEFAULT_NOTIFICATION_TTL_MS,
    ) -> None:
        self._scheduler = scheduler or timer_scheduler
        self._default_ttl_ms = default_ttl_ms
        self._messages: List[Notification] = []
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()
        self._logger = StructuredLogger(__name__)

    @property
    def messages(self) -> List[Notification]:
        """Snapshot of the live set."""
        with self._lock:
            return list(self._messages)

    def push(
        self,
        kind: str,
        title: str,
        description: str = "",
        *,
        ttl_ms: Optional[int] = None,
    ) -> str:
        ttl = self._default_ttl_ms if ttl_ms is None else ttl_ms
        with self._lock:
            live_ids = {message.id for message in self._messages}
            notification_id = uuid.uuid4().hex
            while notification_id in live_ids:
                notification_id = uuid.uuid4().hex
            notification = Notification(
                id=notification_id,
                kind=kind,
                title=title,
                description=description or "",
                ttl_ms=ttl,
            )
            self._messages.append(notification)
        self._logger.debug(f"notification {notification_id} [{kind}] {title}: {description}")
        self._notify()
        self._scheduler(ttl / 1000.0, lambda: self.remove(notification_id))
        return notification_id

    def success(self, title: str, description: str = "", *, ttl_ms: Optional[int] = None) -> str:
        return self.push("success", title, description, ttl_ms=ttl_ms)

    def error(self, title: str, description: str = "", *, ttl_ms: Optional[int] = None) -> str:
        return self.push("error", title, description, ttl_ms=ttl_ms)

    def remove(self, notification_id: str) -> None:
        """Retire a notification; unknown or already retired ids are ignored."""
        with self._lock:
            remaining = [message for message in self._messages if message.id != notification_id]
            changed = len(remaining) != len(self._messages)
            self._messages = remaining
        if changed:
            self._notify()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback receiving the live set after every change; returns an unsubscribe hook."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
            snapshot = list(self._messages)
        for listener in listeners:
            listener(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)


__all__ = ["NotificationQueue", "timer_scheduler"]
