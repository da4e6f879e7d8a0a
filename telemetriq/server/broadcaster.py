"""
Event fan-out and inbound command handling.

Engine deltas are enqueued on one asyncio.Queue per subscriber; a sender
task per connection drains its queue in order, so publishing never waits on
a slow client. A subscriber whose queue fills up is dropped.

Inbound messages:
    - {"type": "toggleFault", "id": "overheating"}
    - {"type": "restartSystem"}
    - {"type": "shutdownSystem"}
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Iterable, Literal, Optional

from pydantic import BaseModel, ValidationError

from telemetriq.core.engine import SimulationEngine
from telemetriq.core.events import Event

logger = logging.getLogger(__name__)


class CommandMessage(BaseModel):
    type: Literal["toggleFault", "restartSystem", "shutdownSystem"]
    id: Optional[str] = None


# Pending events a subscriber may hold before it is considered stalled
DEFAULT_QUEUE_SIZE = 256


class Subscriber:
    """
    One connected client. A `None` on the queue means the broadcaster has
    dropped this subscriber and its sender should close the connection.
    """

    def __init__(self, client_id: str, max_queue: int = DEFAULT_QUEUE_SIZE) -> None:
        self.client_id = client_id
        self.queue: asyncio.Queue[Event | None] = asyncio.Queue(maxsize=max_queue)
        self.dropped = False

    def close(self) -> None:
        """Discard pending events and leave only the close marker."""
        self.dropped = True
        while not self.queue.empty():
            self.queue.get_nowait()
        self.queue.put_nowait(None)

    def drain(self) -> list[Event | None]:
        """Pop everything currently queued (non-blocking)."""
        out = []
        while not self.queue.empty():
            out.append(self.queue.get_nowait())
        return out


class EventBroadcaster:
    """
    Owns the subscriber set and mediates every access to the engine
    coming from the outside world.
    """

    def __init__(self, engine: SimulationEngine, *, max_queue: int = DEFAULT_QUEUE_SIZE) -> None:
        if max_queue < 1:
            raise ValueError("max_queue must be >= 1")
        self.engine = engine
        self.max_queue = max_queue
        self._subscribers: dict[str, Subscriber] = {}
        self._ids = itertools.count(1)
        self.total_events_published = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, client_id: str | None = None) -> Subscriber:
        """
        Register a subscriber and queue its initial snapshot before it can
        see any delta.
        """
        sub = Subscriber(client_id or f"client-{next(self._ids)}", self.max_queue)
        sub.queue.put_nowait(self.engine.initial_event())
        self._subscribers[sub.client_id] = sub
        logger.info("Subscriber connected: %s (%d total)", sub.client_id, len(self._subscribers))
        return sub

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if self._subscribers.pop(subscriber.client_id, None) is not None:
            logger.info("Subscriber disconnected: %s", subscriber.client_id)

    def publish(self, events: Iterable[Event]) -> int:
        events = list(events)
        stalled: list[Subscriber] = []
        for event in events:
            for sub in self._subscribers.values():
                if sub.dropped:
                    continue
                try:
                    sub.queue.put_nowait(event)
                except asyncio.QueueFull:
                    logger.warning(
                        "Dropping stalled subscriber %s (%d events pending)", sub.client_id, sub.queue.qsize()
                    )
                    sub.close()
                    stalled.append(sub)
        for sub in stalled:
            self.unsubscribe(sub)
        self.total_events_published += len(events)
        return len(events)

    # ----------------------------
    # Engine entry points
    # ----------------------------

    def tick(self) -> list[Event]:
        events = self.engine.tick()
        self.publish(events)
        return events

    def toggle_fault(self, fault_id: str) -> list[Event]:
        events = self.engine.toggle_fault(fault_id)
        self.publish(events)
        return events

    def restart_system(self) -> list[Event]:
        events = self.engine.restart()
        self.publish(events)
        return events

    def shutdown_system(self) -> list[Event]:
        events = self.engine.shutdown()
        self.publish(events)
        return events

    def handle_command(self, command: CommandMessage) -> list[Event]:
        if command.type == "toggleFault":
            if not command.id:
                logger.warning("toggleFault without id ignored")
                return []
            return self.toggle_fault(command.id)
        if command.type == "restartSystem":
            return self.restart_system()
        return self.shutdown_system()

    def handle_message(self, message: Any) -> list[Event]:
        """
        Validate a raw inbound message; malformed input is logged and
        ignored (commands carry no acknowledgment).
        """
        try:
            command = CommandMessage.model_validate(message)
        except ValidationError as e:
            logger.warning("Ignoring malformed command %r: %s", message, e.errors())
            return []
        return self.handle_command(command)

    def get_stats(self) -> dict[str, Any]:
        return {
            "subscribers": len(self._subscribers),
            "total_events_published": self.total_events_published,
        }
