"""Shared fakes for registry agent tests: broker objects and a virtual clock."""

import asyncio
import json
from functools import partial
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from registry_agent.client import HeartbeatTimer


async def settle(rounds: int = 20) -> None:
    """Let pending tasks run until the loop is quiet."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class VirtualClock:
    """Sleep replacement whose time only moves when advance() is awaited."""

    def __init__(self):
        self.now = 0.0
        self._sleepers: list[tuple[float, asyncio.Future]] = []

    async def sleep(self, delay: float) -> None:
        entry = (self.now + delay, asyncio.get_running_loop().create_future())
        self._sleepers.append(entry)
        try:
            await entry[1]
        finally:
            if entry in self._sleepers:
                self._sleepers.remove(entry)

    @property
    def pending(self) -> int:
        return len(self._sleepers)

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        await settle()
        while True:
            due = sorted(
                (s for s in self._sleepers if s[0] <= target and not s[1].done()),
                key=lambda s: s[0],
            )
            if not due:
                break
            deadline, future = due[0]
            self._sleepers.remove(due[0])
            self.now = deadline
            future.set_result(None)
            await settle()
        self.now = target


class FakeIncomingMessage:
    """Minimal stand-in for aio_pika's AbstractIncomingMessage."""

    def __init__(self, body: bytes):
        self.body = body
        self.ack = AsyncMock()
        self.nack = AsyncMock()
        self.reject = AsyncMock()

    @classmethod
    def json(cls, payload) -> "FakeIncomingMessage":
        return cls(json.dumps(payload).encode("utf-8"))


class FakeBroker:
    """
    Fake aio_pika connection/channel/queue graph with call recording.

    Declaring a queue and publishing yield to the event loop once, like a
    real broker round trip, so other tasks can run in between.
    """

    def __init__(self):
        self.queue = MagicMock()
        self.queue.consume = AsyncMock(return_value="ctag-1")

        async def declare_queue(*args, **kwargs):
            await asyncio.sleep(0)
            return self.queue

        async def publish(*args, **kwargs):
            await asyncio.sleep(0)

        self.channel = MagicMock()
        self.channel.is_closed = False
        self.channel.declare_queue = AsyncMock(side_effect=declare_queue)
        self.channel.set_qos = AsyncMock()
        self.channel.close = AsyncMock()
        self.channel.default_exchange.publish = AsyncMock(side_effect=publish)

        self.connection = MagicMock()
        self.connection.is_closed = False
        self.connection.channel = AsyncMock(return_value=self.channel)
        self.connection.close = AsyncMock()

        self.connect = AsyncMock(return_value=self.connection)

    @property
    def declared(self) -> list[str]:
        return [c.args[0] for c in self.channel.declare_queue.call_args_list]

    @property
    def consumer_callback(self):
        return self.queue.consume.call_args.args[0]

    def published(self, queue_name: str | None = None) -> list[dict]:
        """Decoded bodies of published messages, optionally for one queue."""
        bodies = []
        for c in self.channel.default_exchange.publish.call_args_list:
            if queue_name is None or c.kwargs["routing_key"] == queue_name:
                bodies.append(json.loads(c.args[0].body))
        return bodies

    def published_messages(self) -> list:
        return [c.args[0] for c in self.channel.default_exchange.publish.call_args_list]


@pytest.fixture
def broker():
    fake = FakeBroker()
    with patch("registry_agent.queue.manager.aio_pika.connect", fake.connect):
        yield fake


@pytest.fixture
def clock(monkeypatch):
    virtual = VirtualClock()
    monkeypatch.setattr(
        "registry_agent.client.registry_client.HeartbeatTimer",
        partial(HeartbeatTimer, sleep=virtual.sleep),
    )
    return virtual
