"""Typed publish/subscribe notifications for sessions and discovery.

``PH803WDevice`` and ``PH803WDiscovery`` each own an ``EventPublisher``;
consumers register callbacks per ``Notification`` kind.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from collections.abc import Callable
from enum import Enum

logger = logging.getLogger(__name__)

Subscriber = Callable[..., object]


class Notification(Enum):
    """Notification kinds and the argument each one carries."""

    CONNECTED = "connected"  # no argument
    DISCONNECTED = "disconnected"  # no argument
    DATA = "data"  # TelemetryReading
    ERROR = "error"  # Exception instance
    DEVICE = "device"  # DiscoveredDevice


class EventPublisher:
    """Dispatch notifications to registered subscribers.

    Subscribers may be plain callables or coroutine functions; coroutines are
    scheduled as tasks on the running loop and tracked until they finish.
    A failing subscriber is logged and does not stop delivery to the others.
    """

    def __init__(self, owner: str) -> None:
        self.owner = owner
        self._subscribers: defaultdict[Notification, list[Subscriber]] = defaultdict(list)
        self._tasks: set[asyncio.Task[object]] = set()

    def subscribe(self, notification: Notification, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` and return a callable that unregisters it."""
        self._subscribers[notification].append(callback)

        def _unsubscribe() -> None:
            self.unsubscribe(notification, callback)

        return _unsubscribe

    def unsubscribe(self, notification: Notification, callback: Subscriber) -> None:
        subscribers = self._subscribers[notification]
        if callback in subscribers:
            subscribers.remove(callback)

    def subscriber_count(self, notification: Notification) -> int:
        return len(self._subscribers[notification])

    def publish(self, notification: Notification, *args: object) -> None:
        subscribers = list(self._subscribers[notification])
        if not subscribers and notification is Notification.ERROR:
            logger.debug(
                "%s error notification has no subscriber: %s",
                self.owner,
                args[0] if args else None,
            )
            return

        for callback in subscribers:
            try:
                result = callback(*args)
            except Exception:
                logger.exception(
                    "%s subscriber for '%s' failed",
                    self.owner,
                    notification.value,
                )
                continue

            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[object]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "%s async subscriber failed: %s",
                self.owner,
                error,
                exc_info=error,
            )
