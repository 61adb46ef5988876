# Registry Protocol
# Wire envelope, message types and inbound classification helpers

from registry_agent.protocol.messages import (
    MessageType,
    ServiceIdentity,
    ProtocolMessage,
    format_timestamp,
    parse_timestamp,
    utc_timestamp,
    parse_message_body,
    matches_identity,
)

__all__ = [
    "MessageType",
    "ServiceIdentity",
    "ProtocolMessage",
    "format_timestamp",
    "parse_timestamp",
    "utc_timestamp",
    "parse_message_body",
    "matches_identity",
]
