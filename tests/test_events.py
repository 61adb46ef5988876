"""Tests for registry event models and the event emitter."""

import asyncio
import logging

import pytest

from registry_agent.events import (
    ApiDescriptionRequest,
    EventEmitter,
    EventType,
    HeartbeatSent,
    ProtocolError,
)
from registry_agent.protocol import ProtocolMessage, ServiceIdentity

IDENTITY = ServiceIdentity(service_name="invoicing", version="1.0.0")


def heartbeat_event() -> HeartbeatSent:
    return HeartbeatSent(message=ProtocolMessage.heartbeat(IDENTITY))


class TestEventModels:

    def test_event_type_values(self):
        assert EventType.HEARTBEAT_SENT.value == "heartbeatSent"
        assert EventType.API_DESCRIPTION_REQUEST.value == "apiDescriptionRequest"
        assert EventType.API_DESCRIPTION_SENT.value == "apiDescriptionSent"
        assert EventType.ERROR.value == "error"
        assert len(EventType) == 4

    def test_heartbeat_event_keeps_sent_message(self):
        message = ProtocolMessage.heartbeat(IDENTITY)
        event = HeartbeatSent(message=message)
        assert event.message is message
        assert event.event_type == EventType.HEARTBEAT_SENT

    def test_protocol_error_wraps_exception(self):
        error = ValueError("boom")
        event = ProtocolError(error=error, source="heartbeat")
        assert event.error is error
        assert event.message == "boom"


class TestEventEmitter:

    @pytest.mark.asyncio
    async def test_sync_and_async_listeners_called_in_order(self):
        emitter = EventEmitter()
        calls = []

        emitter.on(EventType.HEARTBEAT_SENT, lambda e: calls.append("sync"))

        async def async_handler(event):
            await asyncio.sleep(0)
            calls.append("async")

        emitter.on(EventType.HEARTBEAT_SENT, async_handler)

        await emitter.emit(heartbeat_event())
        assert calls == ["sync", "async"]

    @pytest.mark.asyncio
    async def test_listener_only_receives_its_type(self):
        emitter = EventEmitter()
        received = []
        emitter.on("apiDescriptionRequest", received.append)

        await emitter.emit(heartbeat_event())
        await emitter.emit(ApiDescriptionRequest(payload={"type": "apiDescriptionRequest"}))

        assert len(received) == 1
        assert received[0].payload == {"type": "apiDescriptionRequest"}

    @pytest.mark.asyncio
    async def test_decorator_registration_and_off(self):
        emitter = EventEmitter()
        received = []

        @emitter.on(EventType.HEARTBEAT_SENT)
        def handler(event):
            received.append(event)

        assert emitter.listener_count(EventType.HEARTBEAT_SENT) == 1
        assert emitter.off(EventType.HEARTBEAT_SENT, handler)
        assert not emitter.off(EventType.HEARTBEAT_SENT, handler)

        await emitter.emit(heartbeat_event())
        assert received == []

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_others(self, caplog):
        emitter = EventEmitter()
        received = []

        def broken(event):
            raise RuntimeError("listener bug")

        emitter.on(EventType.HEARTBEAT_SENT, broken)
        emitter.on(EventType.HEARTBEAT_SENT, received.append)

        with caplog.at_level(logging.ERROR):
            await emitter.emit(heartbeat_event())

        assert len(received) == 1
        assert "listener bug" in caplog.text

    @pytest.mark.asyncio
    async def test_unhandled_error_event_is_silent(self, caplog):
        emitter = EventEmitter()
        with caplog.at_level(logging.WARNING):
            await emitter.emit(ProtocolError(error=ValueError("bad body")))
        assert "bad body" in caplog.text

    def test_unknown_event_type_rejected(self):
        emitter = EventEmitter()
        with pytest.raises(ValueError):
            emitter.on("registered", lambda e: None)


class TestEventSubscription:

    @pytest.mark.asyncio
    async def test_subscription_receives_events_in_order(self):
        emitter = EventEmitter()
        subscription = emitter.subscribe()

        first = heartbeat_event()
        second = ProtocolError(error=ValueError("x"))
        await emitter.emit(first)
        await emitter.emit(second)

        assert await subscription.get(timeout=1) is first
        assert await subscription.get(timeout=1) is second

    @pytest.mark.asyncio
    async def test_subscription_filters_by_type(self):
        emitter = EventEmitter()
        subscription = emitter.subscribe(event_types=[EventType.ERROR])

        await emitter.emit(heartbeat_event())
        assert await subscription.get(timeout=0.01) is None

    @pytest.mark.asyncio
    async def test_iteration_ends_after_close(self):
        emitter = EventEmitter()
        subscription = emitter.subscribe()

        await emitter.emit(heartbeat_event())
        await emitter.emit(heartbeat_event())
        emitter.close()

        events = [event async for event in subscription]
        assert len(events) == 2
        assert subscription.is_closed

    @pytest.mark.asyncio
    async def test_full_queue_drops_events(self):
        emitter = EventEmitter()
        subscription = emitter.subscribe(max_queue_size=1)

        await emitter.emit(heartbeat_event())
        await emitter.emit(heartbeat_event())

        assert subscription.stats["events_received"] == 1
        assert subscription.stats["events_dropped"] == 1
