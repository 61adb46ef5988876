"""
RabbitMQ Queue Manager

Owns the broker connection and the single channel the registry client
talks through, and guarantees the protocol's durable queues exist before
any traffic flows.

Lifecycle:
1. ``initialize()`` - connect and open one channel (no retry on failure)
2. ``ensure_queues(extra)`` - declare workflow, {service}.registry, then extra
3. ``publish`` / ``consume`` / ``declare_queue`` - serialized channel access
4. ``close()`` - channel first, then connection; safe to repeat
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable
from urllib.parse import urlsplit, urlunsplit
from uuid import uuid4

import aio_pika
from aio_pika import DeliveryMode, Message
from aio_pika.abc import AbstractChannel, AbstractConnection, AbstractIncomingMessage, AbstractQueue
from aio_pika.exceptions import AMQPConnectionError

from registry_agent.exceptions import BrokerConnectionError, ConfigurationError, NotInitializedError
from registry_agent.queue.ports import fixed_queues

logger = logging.getLogger(__name__)

MessageCallback = Callable[[AbstractIncomingMessage], Awaitable[Any]]


def redact_url(url: str) -> str:
    """Hide the password of an AMQP URL for logs and errors."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if parts.password is None:
        return url
    netloc = f"{parts.username}:***@{parts.hostname}"
    if parts.port:
        netloc += f":{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


class QueueManager:
    """
    Connection, channel and queue lifecycle for one registry agent.

    The channel is exposed by reference to the registry client, but this
    manager stays its sole owner and is the only place it is closed.
    """

    def __init__(
        self,
        amqp_url: str,
        service_name: str,
        prefetch_count: int = 1,
    ):
        """
        Initialize the queue manager.

        Args:
            amqp_url: RabbitMQ connection URL (AMQP)
            service_name: Name of the microservice, used for its reserved queue
            prefetch_count: Unacknowledged deliveries allowed per consumer

        Raises:
            ConfigurationError: If amqp_url or service_name is missing
        """
        if not amqp_url:
            raise ConfigurationError("amqp_url is required")
        if not service_name:
            raise ConfigurationError("service_name is required")

        self.amqp_url = amqp_url
        self.service_name = service_name
        self._prefetch_count = prefetch_count

        self._connection: AbstractConnection | None = None
        self._channel: AbstractChannel | None = None
        self._lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._channel is not None

    @property
    def channel(self) -> AbstractChannel:
        """The active channel."""
        if self._channel is None:
            raise NotInitializedError("Channel is not initialized. Call initialize() first.")
        return self._channel

    @property
    def connection(self) -> AbstractConnection | None:
        return self._connection

    async def initialize(self) -> None:
        """
        Connect to the broker and open one channel.

        Raises:
            BrokerConnectionError: If the broker is unreachable or refuses us
        """
        safe_url = redact_url(self.amqp_url)
        try:
            self._connection = await aio_pika.connect(self.amqp_url)
        except (AMQPConnectionError, OSError) as e:
            raise BrokerConnectionError(safe_url, str(e) or type(e).__name__) from e

        try:
            self._channel = await self._connection.channel()
            await self._channel.set_qos(prefetch_count=self._prefetch_count)
        except Exception:
            await self.close()
            raise

        logger.info(f"RabbitMQ connected to {safe_url}")

    async def ensure_queues(self, extra: Iterable[str] = ()) -> list[str]:
        """
        Declare the fixed queues, then every queue in ``extra``, all durable.

        Returns:
            Queue names in declaration order

        Raises:
            NotInitializedError: If called before initialize()
        """
        channel = self.channel
        queue_names = fixed_queues(self.service_name) + list(extra)

        async with self._lock:
            for name in queue_names:
                await channel.declare_queue(name, durable=True)

        logger.info(f"RabbitMQ queues declared: {', '.join(queue_names)}")
        return queue_names

    async def declare_queue(self, name: str) -> AbstractQueue:
        """Declare one durable queue (no-op if it already exists)."""
        channel = self.channel
        async with self._lock:
            return await channel.declare_queue(name, durable=True)

    async def publish(
        self,
        queue_name: str,
        body: bytes,
        message_id: str | None = None,
    ) -> None:
        """Publish a persistent JSON message straight to a queue."""
        channel = self.channel
        message = Message(
            body=body,
            delivery_mode=DeliveryMode.PERSISTENT,
            content_type="application/json",
            message_id=message_id or str(uuid4()),
        )
        async with self._lock:
            await channel.default_exchange.publish(message, routing_key=queue_name)

        logger.debug(f"Published {len(body)} bytes to {queue_name}")

    async def consume(self, queue_name: str, callback: MessageCallback) -> str:
        """
        Start consuming a queue with manual acknowledgment.

        Returns:
            The consumer tag
        """
        channel = self.channel
        async with self._lock:
            queue = await channel.declare_queue(queue_name, durable=True)
            consumer_tag = await queue.consume(callback, no_ack=False)

        logger.info(f"Consuming {queue_name} (consumer tag: {consumer_tag})")
        return consumer_tag

    async def close(self) -> None:
        """Close the channel, then the connection. Never raises."""
        channel, self._channel = self._channel, None
        connection, self._connection = self._connection, None

        if channel is not None and not channel.is_closed:
            try:
                await channel.close()
            except Exception as e:
                logger.warning(f"Error closing RabbitMQ channel: {e}")

        if connection is not None and not connection.is_closed:
            try:
                await connection.close()
            except Exception as e:
                logger.warning(f"Error closing RabbitMQ connection: {e}")

        if channel is not None or connection is not None:
            logger.info("RabbitMQ connection closed")
