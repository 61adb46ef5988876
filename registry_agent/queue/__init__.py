"""
Queue Module

Broker connection and durable queue lifecycle for the registry agent.

Components:
- QueueManager: Owns the RabbitMQ connection/channel and declares queues
- QueueAddressing: The set of queue names one agent uses
"""

from registry_agent.queue.ports import (
    WORKFLOW_QUEUE,
    DEFAULT_API_QUEUE,
    DEFAULT_REGISTRY_QUEUE,
    QueueAddressing,
    fixed_queues,
    service_registry_queue,
)
from registry_agent.queue.manager import QueueManager, redact_url

__all__ = [
    # Addressing
    "WORKFLOW_QUEUE",
    "DEFAULT_API_QUEUE",
    "DEFAULT_REGISTRY_QUEUE",
    "QueueAddressing",
    "fixed_queues",
    "service_registry_queue",
    # Manager
    "QueueManager",
    "redact_url",
]
