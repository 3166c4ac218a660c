"""
Notification sinks for the reminder job.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import List, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    channel_id: str
    notification_id: int
    title: str
    text: str


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None:
        ...


class LogNotifier:
    """Posts notifications to the log."""

    def notify(self, notification: Notification) -> None:
        logger.info(
            "[%s #%d] %s: %s",
            notification.channel_id,
            notification.notification_id,
            notification.title,
            notification.text,
        )


class InMemoryNotifier:
    """Keeps posted notifications, replacing any with the same id."""

    def __init__(self):
        self._lock = threading.Lock()
        self.posted: List[Notification] = []

    def notify(self, notification: Notification) -> None:
        with self._lock:
            self.posted = [
                n for n in self.posted if n.notification_id != notification.notification_id
            ]
            self.posted.append(notification)
