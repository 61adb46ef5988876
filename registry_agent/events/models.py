"""
Registry Client Event Models

The complete observable surface of the registration protocol. Every
externally visible effect of the client is reported through exactly one
of these four events:

- heartbeatSent - a heartbeat was published to the API queue
- apiDescriptionRequest - the registry office asked for our API description
- apiDescriptionSent - an API description was published to the registry queue
- error - an asynchronous protocol failure (malformed inbound message,
  failed scheduled heartbeat)

Events are immutable records. ``RegistryEvent`` is the tagged union of
all four, discriminated by ``event_type``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from registry_agent.protocol.messages import ProtocolMessage


class EventType(str, Enum):
    """Names of the events raised by the registry client."""
    HEARTBEAT_SENT = "heartbeatSent"
    API_DESCRIPTION_REQUEST = "apiDescriptionRequest"
    API_DESCRIPTION_SENT = "apiDescriptionSent"
    ERROR = "error"


class BaseEvent(BaseModel):
    """Common identification and timing fields."""
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event was raised"
    )

    class Config:
        frozen = True
        arbitrary_types_allowed = True


class HeartbeatSent(BaseEvent):
    """A heartbeat was published. Carries the exact message sent."""
    event_type: Literal[EventType.HEARTBEAT_SENT] = EventType.HEARTBEAT_SENT
    message: ProtocolMessage


class ApiDescriptionRequest(BaseEvent):
    """The registry asked this service for its API description."""
    event_type: Literal[EventType.API_DESCRIPTION_REQUEST] = EventType.API_DESCRIPTION_REQUEST
    payload: dict[str, Any] = Field(
        ...,
        description="The parsed request exactly as received"
    )


class ApiDescriptionSent(BaseEvent):
    """An API description was published. Carries the exact message sent."""
    event_type: Literal[EventType.API_DESCRIPTION_SENT] = EventType.API_DESCRIPTION_SENT
    message: ProtocolMessage


class ProtocolError(BaseEvent):
    """An asynchronous failure that was contained by the client."""
    event_type: Literal[EventType.ERROR] = EventType.ERROR
    error: Exception
    source: str = Field(
        default="consumer",
        description="Where the failure happened ('consumer' or 'heartbeat')"
    )

    @property
    def message(self) -> str:
        return str(self.error)


RegistryEvent = Union[HeartbeatSent, ApiDescriptionRequest, ApiDescriptionSent, ProtocolError]
