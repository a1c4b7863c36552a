"""
Change Notification

Stateful components (auth session, subscription store, resend cooldown)
publish an immutable snapshot after every change. A UI layer, or another
component, subscribes to receive them; nothing needs to poll.

A failing subscriber is logged and skipped so it cannot break the
publisher or the other subscribers.
"""

from typing import Callable, Generic, TypeVar

import structlog


logger = structlog.get_logger(__name__)

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class EventHub(Generic[T]):
    """Ordered list of callbacks receiving every published value."""

    def __init__(self, name: str):
        self._name = name
        self._subscribers: list[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        """
        Register `callback`. Returns a function that removes it again.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, value: T) -> None:
        # Copy so callbacks may unsubscribe while being notified
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception as e:
                logger.error(
                    "subscriber_callback_failed",
                    hub=self._name,
                    error=str(e),
                )

    def __len__(self) -> int:
        return len(self._subscribers)
