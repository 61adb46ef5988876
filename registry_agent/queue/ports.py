"""
Queue Addressing

Names of the durable queues the registration protocol depends on.

Queue naming:
- workflow - reserved, always declared
- {service_name}.registry - reserved per-service queue
- api_queue - heartbeats and API traffic (default: api_services_queue)
- registry_queue - inbound registry requests (default: registry_office)
"""

from dataclasses import dataclass

WORKFLOW_QUEUE = "workflow"
DEFAULT_API_QUEUE = "api_services_queue"
DEFAULT_REGISTRY_QUEUE = "registry_office"


def service_registry_queue(service_name: str) -> str:
    """Per-service reserved queue name."""
    return f"{service_name}.registry"


def fixed_queues(service_name: str) -> list[str]:
    """Queues every agent declares regardless of configuration."""
    return [WORKFLOW_QUEUE, service_registry_queue(service_name)]


@dataclass(frozen=True)
class QueueAddressing:
    """The full set of queues one agent uses."""
    service_name: str
    api_queue: str = DEFAULT_API_QUEUE
    registry_queue: str = DEFAULT_REGISTRY_QUEUE

    @property
    def extra_queues(self) -> list[str]:
        """Caller-configured queues, in declaration order."""
        return [self.api_queue, self.registry_queue]

    def all_queues(self) -> list[str]:
        """Fixed queues followed by the configured ones."""
        return fixed_queues(self.service_name) + self.extra_queues
