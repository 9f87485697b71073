"""
Node Event Channel

Ordered channel carrying node notifications to the interactive session:
- Network connectivity (connected, peers added/removed)
- Transactions created, sent and received
- Blocks mined, sent and received

Publishers may run on any thread. Delivery to subscribers happens only
when the foreground thread calls ``EventBus.drain()``.

Author: Chainshell Team
License: MIT
"""

from __future__ import annotations

import queue
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from loguru import logger


# =============================================================================
# Event Types
# =============================================================================


class EventType(Enum):
    """Kinds of node events."""

    # Network events
    CONNECTED = "connected"
    PEER_ADDED = "peer_added"
    PEER_REMOVED = "peer_removed"

    # Transaction events
    TX_CREATED = "tx_created"
    TX_SENT = "tx_sent"
    TX_RECEIVED = "tx_received"

    # Block events
    BLOCK_MINED = "block_mined"
    BLOCKS_SENT = "blocks_sent"
    BLOCKS_RECEIVED = "blocks_received"


@dataclass(frozen=True)
class NodeEvent:
    """Tagged node notification."""

    event_type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def __str__(self) -> str:
        return f"{self.event_type.value} ({self.timestamp}): {self.data}"


EventHandler = Callable[[NodeEvent], None]


# =============================================================================
# Event Bus
# =============================================================================


class EventBus:
    """
    Thread-safe FIFO of node events.

    ``publish`` only enqueues and sets one-shot signals registered with
    ``signal_on``; it never calls subscribers. ``drain`` pops every queued
    event on the calling thread and hands each to the subscribers of its
    type, in publish order.
    """

    def __init__(self, max_history_size: int = 1000):
        """
        Initialize event bus.

        Args:
            max_history_size: Number of delivered events kept for inspection
        """
        self._queue: queue.SimpleQueue[NodeEvent] = queue.SimpleQueue()
        self._handlers: dict[EventType, list[EventHandler]] = {
            event_type: [] for event_type in EventType
        }
        self._signals: dict[EventType, list[threading.Event]] = {
            event_type: [] for event_type in EventType
        }
        self._signals_lock = threading.Lock()
        self.event_history: deque[NodeEvent] = deque(maxlen=max_history_size)

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """
        Register a handler for one event kind.

        Args:
            event_type: Kind of event to handle
            handler: Callback run on the draining thread
        """
        self._handlers[event_type].append(handler)
        logger.debug(
            "Registered event handler",
            event_type=event_type.value,
            total_handlers=len(self._handlers[event_type]),
        )

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Unregister a handler."""
        if handler in self._handlers[event_type]:
            self._handlers[event_type].remove(handler)

    def signal_on(self, event_type: EventType, flag: threading.Event) -> None:
        """Set ``flag`` from the publishing thread when ``event_type`` arrives."""
        with self._signals_lock:
            self._signals[event_type].append(flag)

    def publish(self, event: NodeEvent) -> None:
        """Enqueue an event. Safe to call from any thread."""
        self._queue.put(event)
        with self._signals_lock:
            flags = list(self._signals[event.event_type])
        for flag in flags:
            flag.set()

    def emit(self, event_type: EventType, **data: Any) -> None:
        """Shorthand for ``publish(NodeEvent(event_type, data))``."""
        self.publish(NodeEvent(event_type=event_type, data=data))

    def pending(self) -> int:
        return self._queue.qsize()

    def drain(self) -> int:
        """
        Deliver every queued event to its subscribers.

        Returns:
            Number of events delivered
        """
        delivered = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                break

            self.event_history.append(event)
            delivered += 1
            for handler in list(self._handlers[event.event_type]):
                handler(event)

        return delivered

    def get_event_history(
        self,
        event_type: EventType | None = None,
        limit: int = 100,
    ) -> list[NodeEvent]:
        """
        Get recently delivered events.

        Args:
            event_type: Filter by event type (None for all)
            limit: Maximum number of events to return
        """
        events = list(self.event_history)
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        return events[-limit:]


__all__ = [
    "EventType",
    "NodeEvent",
    "EventHandler",
    "EventBus",
]
