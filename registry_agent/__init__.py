# Registry Agent - Service registration client for the registry office
# Heartbeats, API description requests and protocol events over RabbitMQ

__version__ = "0.1.0"

from registry_agent.client import RegistryClient, ClientState, HeartbeatTimer
from registry_agent.config import RegistrySettings, settings_from_env
from registry_agent.events import (
    EventType,
    HeartbeatSent,
    ApiDescriptionRequest,
    ApiDescriptionSent,
    ProtocolError,
    RegistryEvent,
    EventSubscription,
)
from registry_agent.exceptions import (
    RegistryClientError,
    ConfigurationError,
    BrokerConnectionError,
    NotInitializedError,
    ClientClosedError,
    MessageParseError,
)
from registry_agent.protocol import MessageType, ProtocolMessage, ServiceIdentity
from registry_agent.queue import QueueManager

__all__ = [
    "__version__",
    # Client
    "RegistryClient",
    "ClientState",
    "HeartbeatTimer",
    "QueueManager",
    # Configuration
    "RegistrySettings",
    "settings_from_env",
    # Events
    "EventType",
    "HeartbeatSent",
    "ApiDescriptionRequest",
    "ApiDescriptionSent",
    "ProtocolError",
    "RegistryEvent",
    "EventSubscription",
    # Protocol
    "MessageType",
    "ProtocolMessage",
    "ServiceIdentity",
    # Errors
    "RegistryClientError",
    "ConfigurationError",
    "BrokerConnectionError",
    "NotInitializedError",
    "ClientClosedError",
    "MessageParseError",
]
