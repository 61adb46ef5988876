# Registry Client
# Registration protocol engine: heartbeats, description requests, events

from registry_agent.client.heartbeat import HeartbeatTimer
from registry_agent.client.registry_client import (
    RegistryClient,
    ClientState,
    DEFAULT_HEARTBEAT_INTERVAL_MS,
)

__all__ = ["RegistryClient", "ClientState", "HeartbeatTimer", "DEFAULT_HEARTBEAT_INTERVAL_MS"]
