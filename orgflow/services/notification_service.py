"""
Notification dispatch

Workflows never deliver notifications themselves. They buffer
NotificationEvents on their UnitOfWork; after a successful commit the buffer
is handed to a publisher which feeds a NotificationDispatcher. Delivery is
best-effort: a failing dispatcher is logged and never affects committed state.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from fastapi import BackgroundTasks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationEvent:
    recipient_id: int
    title: str
    body: str
    type: str = "GENERIC"
    payload: Dict[str, Any] = field(default_factory=dict)
    actor_id: Optional[int] = None


Publisher = Callable[[List[NotificationEvent]], None]


class NotificationDispatcher:
    """Delivery interface; implementations live with the messaging service."""

    def dispatch(self, event: NotificationEvent) -> None:
        raise NotImplementedError


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Default dispatcher: records each event in the application log."""

    def dispatch(self, event: NotificationEvent) -> None:
        logger.info(
            "notification: recipient_id=%s type=%s title=%r payload=%s",
            event.recipient_id, event.type, event.title, event.payload,
        )


class InMemoryNotificationDispatcher(NotificationDispatcher):
    """Keeps events in a list; used by tests and local tooling."""

    def __init__(self):
        self.events: List[NotificationEvent] = []

    def dispatch(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def for_recipient(self, recipient_id: int) -> List[NotificationEvent]:
        return [e for e in self.events if e.recipient_id == recipient_id]

    def clear(self) -> None:
        self.events.clear()


_default_dispatcher: NotificationDispatcher = LoggingNotificationDispatcher()


def get_dispatcher() -> NotificationDispatcher:
    """FastAPI dependency returning the process-wide dispatcher"""
    return _default_dispatcher


def set_dispatcher(dispatcher: NotificationDispatcher) -> None:
    global _default_dispatcher
    _default_dispatcher = dispatcher


def deliver_all(dispatcher: NotificationDispatcher, events: Iterable[NotificationEvent]) -> int:
    """
    Hand every event to the dispatcher, at most once each.

    Returns:
        Number of events the dispatcher accepted
    """
    delivered = 0
    for event in events:
        try:
            dispatcher.dispatch(event)
            delivered += 1
        except Exception:
            logger.exception(
                "notification delivery failed: recipient_id=%s title=%r",
                event.recipient_id, event.title,
            )
    return delivered


def immediate_publisher(dispatcher: Optional[NotificationDispatcher] = None) -> Publisher:
    """Deliver synchronously right after commit."""
    def publish(events: List[NotificationEvent]) -> None:
        deliver_all(dispatcher or get_dispatcher(), events)
    return publish


def background_publisher(background_tasks: BackgroundTasks, dispatcher: NotificationDispatcher) -> Publisher:
    """Deliver after the HTTP response has been sent."""
    def publish(events: List[NotificationEvent]) -> None:
        background_tasks.add_task(deliver_all, dispatcher, list(events))
    return publish
