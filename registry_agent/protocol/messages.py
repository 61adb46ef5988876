"""
Registry Protocol Messages

Every message exchanged with the registry office uses one flat JSON
envelope:

    {"id": ..., "type": ..., "serviceName": ..., "version": ...,
     "timestamp": ..., "description": ...}

- ``id`` is a fresh UUID4 per outbound message
- ``timestamp`` is UTC ISO-8601 with millisecond precision and a ``Z``
  suffix, so values sort lexically in time order
- ``description`` is present only on ``apiDescription`` messages and is
  never inspected by the agent

Inbound parsing is deliberately lenient: anything that decodes as JSON is
accepted and classified; only undecodable bodies are errors.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from registry_agent.exceptions import MessageParseError


class MessageType(str, Enum):
    """Registry protocol message types."""
    HEARTBEAT = "heartbeat"
    API_DESCRIPTION_REQUEST = "apiDescriptionRequest"
    API_DESCRIPTION = "apiDescription"


class ServiceIdentity(BaseModel):
    """Name and version identifying this agent to the registry."""
    service_name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)

    class Config:
        frozen = True

    def __str__(self) -> str:
        return f"{self.service_name}@{self.version}"


def format_timestamp(moment: datetime) -> str:
    """Render a datetime as UTC ISO-8601 with milliseconds and ``Z``."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse a wire timestamp back into an aware UTC datetime."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value).astimezone(timezone.utc)


def utc_timestamp() -> str:
    """Current time in wire format."""
    return format_timestamp(datetime.now(timezone.utc))


class ProtocolMessage(BaseModel):
    """
    A single registry protocol message.

    Attribute names are snake_case; serialization uses the camelCase
    wire aliases.
    """
    id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique message identifier"
    )
    type: MessageType = Field(
        ...,
        description="Protocol message type"
    )
    service_name: str = Field(
        ...,
        alias="serviceName",
        description="Name of the announcing service"
    )
    version: str = Field(
        ...,
        description="Version of the announcing service"
    )
    timestamp: str = Field(
        default_factory=utc_timestamp,
        description="UTC ISO-8601 creation time"
    )
    description: Any | None = Field(
        default=None,
        description="Opaque API description (apiDescription only)"
    )

    class Config:
        populate_by_name = True
        frozen = True

    @classmethod
    def heartbeat(cls, identity: ServiceIdentity) -> "ProtocolMessage":
        """Build a heartbeat with a fresh id and timestamp."""
        return cls(
            type=MessageType.HEARTBEAT,
            service_name=identity.service_name,
            version=identity.version,
        )

    @classmethod
    def api_description(
        cls,
        identity: ServiceIdentity,
        description: Any,
    ) -> "ProtocolMessage":
        """Build an API description message carrying an opaque payload."""
        return cls(
            type=MessageType.API_DESCRIPTION,
            service_name=identity.service_name,
            version=identity.version,
            description=description,
        )

    def to_wire(self) -> dict[str, Any]:
        """Wire representation (camelCase keys, no absent description)."""
        data = self.model_dump(mode="json", by_alias=True)
        if self.type != MessageType.API_DESCRIPTION:
            data.pop("description", None)
        return data

    def to_bytes(self) -> bytes:
        """Serialize to a UTF-8 JSON body."""
        return json.dumps(self.to_wire()).encode("utf-8")


def parse_message_body(body: bytes) -> Any:
    """
    Decode an inbound message body.

    Returns whatever JSON value the body holds (usually a dict).

    Raises:
        MessageParseError: If the body is not UTF-8 encoded JSON
    """
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MessageParseError(body, str(e)) from e


def matches_identity(payload: Any, identity: ServiceIdentity) -> bool:
    """True if payload is an API description request addressed to ``identity``."""
    if not isinstance(payload, dict):
        return False
    return (
        payload.get("type") == MessageType.API_DESCRIPTION_REQUEST.value
        and payload.get("serviceName") == identity.service_name
        and payload.get("version") == identity.version
    )
