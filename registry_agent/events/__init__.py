# Registry Client Events
# The four protocol events and their listener/subscription delivery

from registry_agent.events.models import (
    EventType,
    BaseEvent,
    HeartbeatSent,
    ApiDescriptionRequest,
    ApiDescriptionSent,
    ProtocolError,
    RegistryEvent,
)
from registry_agent.events.emitter import (
    EventEmitter,
    EventSubscription,
    EventHandler,
)

__all__ = [
    # Event Models
    "EventType",
    "BaseEvent",
    "HeartbeatSent",
    "ApiDescriptionRequest",
    "ApiDescriptionSent",
    "ProtocolError",
    "RegistryEvent",
    # Delivery
    "EventEmitter",
    "EventSubscription",
    "EventHandler",
]
