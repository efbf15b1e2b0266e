"""
Event bus between the editor core and whatever presents it.
Decoupled pub/sub: the document and session manager publish, a GUI or CLI
subscribes.
"""

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventBus:
    """Central event system."""

    _subscribers: dict[str, list[Callable]] = {}

    @classmethod
    def subscribe(cls, event: str, callback: Callable):
        """Subscribe to an event."""
        if event not in cls._subscribers:
            cls._subscribers[event] = []
        cls._subscribers[event].append(callback)

    @classmethod
    def publish(cls, event: str, data: Any = None):
        """Publish an event to all subscribers."""
        for cb in list(cls._subscribers.get(event, [])):
            try:
                cb(data)
            except Exception as e:
                logger.error(f"EventBus error on '{event}': {e}")

    @classmethod
    def unsubscribe(cls, event: str, callback: Callable):
        """Unsubscribe from an event."""
        if event in cls._subscribers:
            try:
                cls._subscribers[event].remove(callback)
            except ValueError:
                pass

    @classmethod
    def clear(cls):
        """Clear all subscriptions."""
        cls._subscribers.clear()


# Event constants - use these for type safety
class Events:
    """Event name constants."""
    # Slot events
    SLOT_OPENED = "slot.opened"
    SLOT_CLOSED = "slot.closed"
    SLOT_SAVED = "slot.saved"

    # Category events
    CATEGORY_DECODED = "category.decoded"
    CATEGORY_UNAVAILABLE = "category.unavailable"
    CATEGORY_REVERTED = "category.reverted"
    CATEGORY_SAVED = "category.saved"

    # Edit events
    VALUE_CHANGED = "value.changed"

    # Search events
    SEARCH_RESULT_SELECTED = "search.result_selected"
