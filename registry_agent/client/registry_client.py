"""
Service Registry Client

Drives the registration protocol between one microservice and the central
registry office:

- announces liveness with periodic heartbeats on the API queue
- listens on the registry queue for API description requests
- publishes the service's API description on demand
- reports every protocol effect through exactly one of four events
  (heartbeatSent, apiDescriptionRequest, apiDescriptionSent, error)

States:
    UNINITIALIZED --init()--> READY --close()--> CLOSED
The heartbeat timer is armed/disarmed independently while READY.

Acknowledgment policy for inbound messages:
- undecodable body -> error event, nack without requeue (discarded)
- anything that parses -> acked exactly once, after classification;
  only a matching apiDescriptionRequest raises an event
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Iterable, TYPE_CHECKING

from aio_pika.abc import AbstractIncomingMessage

from registry_agent.client.heartbeat import HeartbeatTimer
from registry_agent.events import (
    ApiDescriptionRequest,
    ApiDescriptionSent,
    EventEmitter,
    EventHandler,
    EventSubscription,
    EventType,
    HeartbeatSent,
    ProtocolError,
)
from registry_agent.exceptions import (
    ClientClosedError,
    ConfigurationError,
    MessageParseError,
    NotInitializedError,
    RegistryClientError,
)
from registry_agent.protocol import (
    ProtocolMessage,
    ServiceIdentity,
    matches_identity,
    parse_message_body,
)
from registry_agent.queue import (
    DEFAULT_API_QUEUE,
    DEFAULT_REGISTRY_QUEUE,
    QueueAddressing,
    QueueManager,
)

if TYPE_CHECKING:
    from registry_agent.config import RegistrySettings

logger = logging.getLogger(__name__)

DEFAULT_HEARTBEAT_INTERVAL_MS = 10000


class ClientState(str, Enum):
    """Lifecycle state of a registry client."""
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    CLOSED = "closed"


class RegistryClient:
    """
    Registers a microservice with the registry office over RabbitMQ.

    Usage::

        client = RegistryClient("amqp://localhost", "invoicing", "1.0.0")

        @client.on(EventType.API_DESCRIPTION_REQUEST)
        async def respond(event):
            await client.send_api_description(load_description())

        await client.init()
        await client.start_heartbeat()
        ...
        await client.close()
    """

    def __init__(
        self,
        amqp_url: str,
        service_name: str,
        version: str,
        heartbeat_interval: int = DEFAULT_HEARTBEAT_INTERVAL_MS,
        api_queue: str = DEFAULT_API_QUEUE,
        registry_queue: str = DEFAULT_REGISTRY_QUEUE,
    ):
        """
        Initialize the client. No broker traffic happens until init().

        Args:
            amqp_url: RabbitMQ connection URL (AMQP)
            service_name: Name of the service (e.g. 'invoicing')
            version: Version of the service (e.g. '1.2.0')
            heartbeat_interval: Milliseconds between heartbeats
            api_queue: Queue for heartbeat and API traffic
            registry_queue: Queue this agent consumes for registry requests

        Raises:
            ConfigurationError: If a required value is missing or the interval is not positive
        """
        if not amqp_url or not service_name or not version:
            raise ConfigurationError("amqp_url, service_name, and version are required")
        if (
            not isinstance(heartbeat_interval, int)
            or isinstance(heartbeat_interval, bool)
            or heartbeat_interval <= 0
        ):
            raise ConfigurationError(
                f"heartbeat_interval must be a positive integer, got {heartbeat_interval!r}"
            )
        if not api_queue or not registry_queue:
            raise ConfigurationError("api_queue and registry_queue must not be empty")

        self.identity = ServiceIdentity(service_name=service_name, version=version)
        self.heartbeat_interval = heartbeat_interval
        self.addressing = QueueAddressing(
            service_name=service_name,
            api_queue=api_queue,
            registry_queue=registry_queue,
        )
        self.queue_manager = QueueManager(amqp_url, service_name)

        self._events = EventEmitter()
        self._state = ClientState.UNINITIALIZED
        self._heartbeat: HeartbeatTimer | None = None
        self._consumer_tag: str | None = None
        self._handler_lock = asyncio.Lock()
        self._handling_task: asyncio.Task | None = None

    @classmethod
    def from_settings(cls, settings: "RegistrySettings") -> "RegistryClient":
        """Build a client from validated environment settings."""
        return cls(
            amqp_url=settings.amqp_url,
            service_name=settings.service_name,
            version=settings.version,
            heartbeat_interval=settings.heartbeat_interval,
            api_queue=settings.api_queue,
            registry_queue=settings.registry_queue,
        )

    # === Properties ===

    @property
    def service_name(self) -> str:
        return self.identity.service_name

    @property
    def version(self) -> str:
        return self.identity.version

    @property
    def api_queue(self) -> str:
        return self.addressing.api_queue

    @property
    def registry_queue(self) -> str:
        return self.addressing.registry_queue

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def heartbeat_active(self) -> bool:
        return self._heartbeat is not None

    # === Events ===

    def on(self, event_type: EventType | str, handler: EventHandler | None = None):
        """Register an event listener (also usable as a decorator)."""
        return self._events.on(event_type, handler)

    def off(self, event_type: EventType | str, handler: EventHandler) -> bool:
        """Remove an event listener."""
        return self._events.off(event_type, handler)

    def subscribe(
        self,
        event_types: Iterable[EventType] | None = None,
        max_queue_size: int = 1000,
    ) -> EventSubscription:
        """Async-iterable stream of events (closed by close())."""
        return self._events.subscribe(event_types, max_queue_size)

    # === Lifecycle ===

    async def init(self) -> None:
        """
        Connect, declare the protocol's queues and start consuming the
        registry queue with manual acknowledgment.

        Raises:
            BrokerConnectionError: If the broker cannot be reached
            ClientClosedError: If the client was already closed
            RegistryClientError: If the client is already initialized
        """
        if self._state == ClientState.CLOSED:
            raise ClientClosedError("Registry client is closed")
        if self._state == ClientState.READY:
            raise RegistryClientError("Registry client is already initialized")

        try:
            await self.queue_manager.initialize()
            await self.queue_manager.ensure_queues(self.addressing.extra_queues)
            self._consumer_tag = await self.queue_manager.consume(
                self.registry_queue,
                self._handle_registry_message,
            )
        except Exception:
            await self.queue_manager.close()
            raise

        self._state = ClientState.READY
        logger.info(
            f"Registry client ready for {self.identity} "
            f"(api queue: {self.api_queue}, registry queue: {self.registry_queue})"
        )

    async def close(self) -> None:
        """
        Stop heartbeats and release the broker connection. Safe to repeat.

        The client is CLOSED as soon as this starts, so a concurrent
        start_heartbeat() cannot arm a timer. An inbound message that is
        being handled is acked or nacked before the channel goes away.
        """
        was_closed = self._state == ClientState.CLOSED
        self._state = ClientState.CLOSED

        await self.stop_heartbeat()

        if self._handling_task is not None and self._handling_task is asyncio.current_task():
            # Called from a listener of the message being handled
            await self.queue_manager.close()
        else:
            async with self._handler_lock:
                await self.queue_manager.close()

        self._events.close()
        if not was_closed:
            logger.info(f"Registry client closed for {self.identity}")

    async def __aenter__(self) -> "RegistryClient":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _require_ready(self) -> None:
        if self._state == ClientState.CLOSED:
            raise ClientClosedError("Registry client is closed")
        if self._state != ClientState.READY:
            raise NotInitializedError("Registry client is not initialized. Call init() first.")

    # === Inbound ===

    async def _handle_registry_message(self, message: AbstractIncomingMessage) -> None:
        """Classify one inbound message, raise its event, then ack or nack it."""
        async with self._handler_lock:
            self._handling_task = asyncio.current_task()
            try:
                await self._dispatch_registry_message(message)
            finally:
                self._handling_task = None

    async def _dispatch_registry_message(self, message: AbstractIncomingMessage) -> None:
        try:
            payload = parse_message_body(message.body)
        except MessageParseError as e:
            logger.warning(f"Rejecting malformed message on {self.registry_queue}: {e.reason}")
            await self._events.emit(ProtocolError(error=e, source="consumer"))
            await message.nack(requeue=False)
            return

        if matches_identity(payload, self.identity):
            logger.info(f"API description requested for {self.identity}")
            await self._events.emit(ApiDescriptionRequest(payload=payload))
        else:
            logger.debug(f"Ignoring registry message not addressed to {self.identity}")

        await message.ack()

    # === Outbound ===

    async def send_heartbeat(self) -> ProtocolMessage:
        """
        Publish one heartbeat to the API queue.

        Returns:
            The message that was sent
        """
        self._require_ready()

        message = ProtocolMessage.heartbeat(self.identity)
        await self.queue_manager.declare_queue(self.api_queue)
        await self.queue_manager.publish(self.api_queue, message.to_bytes(), message_id=message.id)

        logger.debug(f"Heartbeat {message.id} sent to {self.api_queue}")
        await self._events.emit(HeartbeatSent(message=message))
        return message

    async def start_heartbeat(self) -> None:
        """
        Send a heartbeat now, then every ``heartbeat_interval`` milliseconds.

        Calling it while the heartbeat is active logs a warning and does
        nothing. The timer is claimed before the first send and only armed
        if no stop_heartbeat() or close() happened during that send.
        """
        self._require_ready()

        if self._heartbeat is not None:
            logger.warning("Heartbeat already started; call stop_heartbeat() first")
            return

        timer = HeartbeatTimer(
            self.heartbeat_interval / 1000,
            self.send_heartbeat,
            on_error=self._on_heartbeat_error,
        )
        self._heartbeat = timer

        try:
            await self.send_heartbeat()
        except Exception:
            if self._heartbeat is timer:
                self._heartbeat = None
            raise

        if self._heartbeat is not timer or self._state != ClientState.READY:
            logger.info("Heartbeat stopped before its timer was armed")
            return

        timer.start()
        logger.info(f"Heartbeat started every {self.heartbeat_interval} ms")

    async def stop_heartbeat(self) -> None:
        """Disarm the heartbeat timer. No-op if the heartbeat is not active."""
        timer, self._heartbeat = self._heartbeat, None
        if timer is None:
            return
        await timer.stop()
        logger.info("Heartbeat stopped")

    async def _on_heartbeat_error(self, error: Exception) -> None:
        await self._events.emit(ProtocolError(error=error, source="heartbeat"))

    async def send_api_description(self, description: Any) -> ProtocolMessage:
        """
        Publish this service's API description to the registry queue.

        Args:
            description: JSON-serializable description; transported as-is

        Returns:
            The message that was sent
        """
        self._require_ready()

        message = ProtocolMessage.api_description(self.identity, description)
        await self.queue_manager.declare_queue(self.registry_queue)
        await self.queue_manager.publish(self.registry_queue, message.to_bytes(), message_id=message.id)

        logger.info(f"API description {message.id} sent to {self.registry_queue}")
        await self._events.emit(ApiDescriptionSent(message=message))
        return message
