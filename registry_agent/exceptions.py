"""
Registry Agent Exceptions

Error taxonomy shared by the queue manager and the registry client.

- Setup-time errors (configuration, broker connection, missing init)
  propagate to the caller as failed operations.
- Steady-state errors (malformed inbound messages) never leave the
  consumer; they are delivered as ``error`` events.
"""


class RegistryClientError(Exception):
    """Base exception for registry agent errors."""
    pass


class ConfigurationError(RegistryClientError, ValueError):
    """Required construction parameter or environment variable is missing or invalid."""
    pass


class BrokerConnectionError(RegistryClientError, ConnectionError):
    """Broker is unreachable or refused the connection."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Cannot connect to broker at {url}: {reason}")


class NotInitializedError(RegistryClientError):
    """Operation invoked before the required setup step."""
    pass


class ClientClosedError(NotInitializedError):
    """Operation invoked after the client was closed."""
    pass


class MessageParseError(RegistryClientError):
    """Inbound message body is not a valid JSON document."""

    def __init__(self, body: bytes, reason: str):
        self.body = body
        self.reason = reason
        super().__init__(f"Malformed registry message ({len(body)} bytes): {reason}")
