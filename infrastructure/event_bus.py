"""
Lightweight event bus for decoupled session change notifications.

Follows publisher-subscriber pattern so the presentation layer can
re-render on every session mutation without the core knowing how.

Design Principles:
- Publisher-subscriber pattern (decoupled)
- Supports both sync and async handlers
- Non-blocking (async handlers scheduled via create_task, tracked until done)
- Singleton for global access, injectable per session
- Type-safe events via msgspec

Architecture:
    SessionStore → EventBus → [UI renderer, Logger, Tests]

Usage:
    from infrastructure.event_bus import get_event_bus, EventType

    bus = get_event_bus()

    def on_entry(event: SessionEvent):
        render_message(event.payload["text"])

    bus.subscribe(EventType.ENTRY_APPENDED, on_entry)
"""
from typing import Callable, List, Dict, Any, Optional, Set
from enum import Enum
import msgspec
import asyncio
import time
from collections import defaultdict
import logging


logger = logging.getLogger("prompt_coach.event_bus")


class EventType(str, Enum):
    """Types of events published by the session store."""
    ENTRY_APPENDED = "entry_appended"
    QNA_RECORDED = "qna_recorded"
    ARTIFACT_CHANGED = "artifact_changed"
    QUESTION_CHANGED = "question_changed"
    STATE_CHANGED = "state_changed"
    BUSY_CHANGED = "busy_changed"
    SESSION_RESET = "session_reset"


class SessionEvent(msgspec.Struct, kw_only=True):
    """
    Event emitted when the session changes.

    Attributes:
        type: Type of event (ENTRY_APPENDED, STATE_CHANGED, etc.)
        payload: Event-specific data (entry fields, new state, etc.)
        timestamp: Unix timestamp when event occurred
        source: Source of event ("session_store", "driver")
    """
    type: EventType
    payload: Dict[str, Any]
    timestamp: float
    source: str


class EventBus:
    """
    Event bus for session change notifications.

    Thread Safety:
        NOT thread-safe. A session is mutated from a single event loop,
        so no locking is done here.

    Performance:
        - O(1) event publishing
        - O(n) notification per event type (where n = subscriber count)
        - Non-blocking for async handlers (scheduled as tasks)
    """

    def __init__(self):
        """Initialize empty subscriber lists."""
        self._subscribers: Dict[EventType, List[Callable]] = defaultdict(list)
        self._async_subscribers: Dict[EventType, List[Callable]] = defaultdict(list)
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, event_type: EventType, handler: Callable[[SessionEvent], None]):
        """
        Subscribe to events with a synchronous handler.

        Args:
            event_type: Type of event to listen for
            handler: Callable that takes SessionEvent as argument
        """
        if handler not in self._subscribers[event_type]:
            self._subscribers[event_type].append(handler)
            logger.debug(f"Subscribed sync handler to {event_type.value}")

    def subscribe_async(self, event_type: EventType, handler: Callable[[SessionEvent], Any]):
        """
        Subscribe to events with an async handler.

        Args:
            event_type: Type of event to listen for
            handler: Async callable that takes SessionEvent as argument
        """
        if handler not in self._async_subscribers[event_type]:
            self._async_subscribers[event_type].append(handler)
            logger.debug(f"Subscribed async handler to {event_type.value}")

    def subscribe_all(self, handler: Callable[[SessionEvent], None]):
        """Subscribe a synchronous handler to every event type."""
        for event_type in EventType:
            self.subscribe(event_type, handler)

    def publish(self, event: SessionEvent):
        """
        Publish an event to all subscribers.

        Sync handlers run immediately; async handlers are scheduled on the
        running loop. Exceptions in handlers are logged but don't propagate.
        """
        logger.debug(
            f"Publishing {event.type.value} from {event.source} "
            f"(payload keys: {list(event.payload.keys())})"
        )

        for handler in self._subscribers[event.type]:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Error in sync handler for {event.type.value}: {e}",
                    exc_info=True
                )

        for handler in self._async_subscribers[event.type]:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.warning(
                    f"Cannot schedule async handler for {event.type.value}: "
                    "no event loop running"
                )
                continue
            try:
                task = loop.create_task(handler(event))
            except Exception as e:
                logger.error(
                    f"Error scheduling async handler for {event.type.value}: {e}",
                    exc_info=True
                )
                continue
            # The loop only keeps weak references to tasks
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Error in async handler: {error}", exc_info=error)

    async def drain(self):
        """Wait until every scheduled async handler has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def emit(self, event_type: EventType, payload: Optional[Dict[str, Any]] = None, source: str = "unknown"):
        """Build and publish a SessionEvent stamped with the current time."""
        self.publish(SessionEvent(
            type=event_type,
            payload=payload or {},
            timestamp=time.time(),
            source=source,
        ))

    def unsubscribe(self, event_type: EventType, handler: Callable):
        """Unsubscribe a handler (must be the same instance)."""
        if handler in self._subscribers[event_type]:
            self._subscribers[event_type].remove(handler)
            logger.debug(f"Unsubscribed sync handler from {event_type.value}")

        if handler in self._async_subscribers[event_type]:
            self._async_subscribers[event_type].remove(handler)
            logger.debug(f"Unsubscribed async handler from {event_type.value}")

    def clear_subscribers(self, event_type: EventType = None):
        """
        Clear all subscribers for an event type (or all types).

        Warning:
            This is primarily for testing.
        """
        if event_type is None:
            self._subscribers.clear()
            self._async_subscribers.clear()
            logger.info("Cleared all event subscribers")
        else:
            self._subscribers[event_type].clear()
            self._async_subscribers[event_type].clear()
            logger.info(f"Cleared subscribers for {event_type.value}")

    def subscriber_count(self, event_type: EventType = None) -> int:
        """Count subscribers (sync + async) for one event type or all."""
        if event_type is None:
            total = sum(len(handlers) for handlers in self._subscribers.values())
            total += sum(len(handlers) for handlers in self._async_subscribers.values())
            return total
        return (
            len(self._subscribers[event_type]) +
            len(self._async_subscribers[event_type])
        )


# =============================================================================
# SINGLETON INSTANCE
# =============================================================================

_event_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Get the global event bus instance (singleton)."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
        logger.info("Initialized global event bus")
    return _event_bus


def reset_event_bus() -> None:
    """Drop the global event bus (forces re-initialization on next get)."""
    global _event_bus
    _event_bus = None
