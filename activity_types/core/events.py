"""Domain event constants and publisher.

Defines event type constants, a publish() callable used after a batch
commits, and subscribe() so other modules can react (cache eviction,
seeding for new users) without the services knowing about them.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List
import logging

logger = logging.getLogger(__name__)

ACTIVITY_TYPES_CHANGED = "activity_types.changed"
ACTIVITY_TYPES_INITIALIZED = "activity_types.initialized"
USER_CREATED = "user.created"

Handler = Callable[[Dict[str, Any]], None]

_SUBSCRIBERS: Dict[str, List[Handler]] = {}

# In-memory buffer of published events, read by tests and debugging tools
EVENT_BUFFER: List[Dict[str, Any]] = []


def subscribe(event_type: str, handler: Handler) -> None:
    handlers = _SUBSCRIBERS.setdefault(event_type, [])
    if handler not in handlers:
        handlers.append(handler)


def unsubscribe(event_type: str, handler: Handler) -> None:
    handlers = _SUBSCRIBERS.get(event_type) or []
    if handler in handlers:
        handlers.remove(handler)


def publish(event_type: str, payload: Dict[str, Any]) -> None:
    """Publish a domain event to the buffer and every subscriber.

    A failing subscriber is logged and does not stop the others; the change
    that produced the event is already committed.
    """
    logger.info("event_publish type=%s payload=%s", event_type, payload)
    EVENT_BUFFER.append({"type": event_type, "payload": payload})
    for handler in list(_SUBSCRIBERS.get(event_type) or []):
        try:
            handler(payload)
        except Exception:
            logger.error("event handler failed type=%s handler=%r", event_type, handler, exc_info=True)


def get_buffered_events(clear: bool = True) -> List[Dict[str, Any]]:
    """Return buffered domain events; optionally clear the buffer."""
    events = list(EVENT_BUFFER)
    if clear:
        EVENT_BUFFER.clear()
    return events


__all__ = [
    "ACTIVITY_TYPES_CHANGED",
    "ACTIVITY_TYPES_INITIALIZED",
    "USER_CREATED",
    "publish",
    "subscribe",
    "unsubscribe",
    "get_buffered_events",
    "EVENT_BUFFER",
]
