"""
Registry Event Emitter

Delivers registry client events to callers without polling.

Two delivery styles are supported and may be mixed:
- Listeners: ``emitter.on(EventType.HEARTBEAT_SENT, handler)``. Handlers
  may be plain functions or coroutine functions; they run in registration
  order and coroutine handlers are awaited before ``emit`` returns.
- Subscriptions: ``async for event in emitter.subscribe(): ...`` gives a
  bounded per-subscriber queue, optionally restricted to some event types.

A failing listener is logged and never interrupts the protocol.
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable

from registry_agent.events.models import EventType, RegistryEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[RegistryEvent], Awaitable[None] | None]


class EventSubscription:
    """
    A single subscription to the client's events.

    Maintains a queue of matching events and supports async iteration.
    """

    def __init__(
        self,
        event_types: Iterable[EventType] | None = None,
        max_queue_size: int = 1000,
    ):
        self.event_types = set(event_types) if event_types is not None else None
        self._queue: asyncio.Queue[RegistryEvent | None] = asyncio.Queue(maxsize=max_queue_size)
        self._closed = False
        self._events_received = 0
        self._events_dropped = 0

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "events_received": self._events_received,
            "events_dropped": self._events_dropped,
            "queue_size": self._queue.qsize(),
            "is_closed": self._closed,
        }

    def deliver(self, event: RegistryEvent) -> bool:
        """
        Deliver an event to this subscription.

        Returns:
            True if queued, False if filtered out, dropped or closed
        """
        if self._closed:
            return False

        if self.event_types is not None and event.event_type not in self.event_types:
            return False

        try:
            self._queue.put_nowait(event)
            self._events_received += 1
            return True
        except asyncio.QueueFull:
            self._events_dropped += 1
            logger.warning(f"Registry event dropped ({event.event_type.value}): subscription queue full")
            return False

    async def get(self, timeout: float | None = None) -> RegistryEvent | None:
        """
        Get the next event.

        Args:
            timeout: Max seconds to wait (None = wait forever)

        Returns:
            Next event, or None if the subscription closed or timed out
        """
        if self._closed and self._queue.empty():
            return None

        try:
            if timeout is not None:
                return await asyncio.wait_for(self._queue.get(), timeout=timeout)
            return await self._queue.get()
        except asyncio.TimeoutError:
            return None

    async def __aiter__(self) -> AsyncIterator[RegistryEvent]:
        while True:
            event = await self.get()
            if event is None:
                break
            yield event

    def close(self) -> None:
        """Close the subscription; iteration ends after queued events."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            pass


class EventEmitter:
    """Listener registry and fan-out for registry events."""

    def __init__(self):
        self._listeners: dict[EventType, list[EventHandler]] = defaultdict(list)
        self._subscriptions: list[EventSubscription] = []

    def on(self, event_type: EventType | str, handler: EventHandler | None = None):
        """
        Register a listener for an event type.

        Can be used directly or as a decorator::

            @client.on(EventType.API_DESCRIPTION_REQUEST)
            async def respond(event): ...
        """
        event_type = EventType(event_type)

        if handler is None:
            def decorator(func: EventHandler) -> EventHandler:
                self._listeners[event_type].append(func)
                return func
            return decorator

        self._listeners[event_type].append(handler)
        return handler

    def off(self, event_type: EventType | str, handler: EventHandler) -> bool:
        """Remove a listener. Returns False if it was not registered."""
        listeners = self._listeners.get(EventType(event_type), [])
        try:
            listeners.remove(handler)
            return True
        except ValueError:
            return False

    def listener_count(self, event_type: EventType | str) -> int:
        return len(self._listeners.get(EventType(event_type), []))

    def subscribe(
        self,
        event_types: Iterable[EventType] | None = None,
        max_queue_size: int = 1000,
    ) -> EventSubscription:
        """Create a subscription receiving events of the given types (all if None)."""
        subscription = EventSubscription(event_types=event_types, max_queue_size=max_queue_size)
        self._subscriptions.append(subscription)
        return subscription

    async def emit(self, event: RegistryEvent) -> None:
        """Dispatch an event to every listener, then to every subscription."""
        listeners = list(self._listeners.get(event.event_type, []))

        if not listeners and event.event_type == EventType.ERROR:
            logger.warning(f"Unhandled registry client error: {event.error}")

        for handler in listeners:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Listener for {event.event_type.value} failed")

        self._subscriptions = [s for s in self._subscriptions if not s.is_closed]
        for subscription in self._subscriptions:
            subscription.deliver(event)

    def close(self) -> None:
        """Close all subscriptions. Listeners stay registered."""
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions.clear()
