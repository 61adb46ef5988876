"""
Registry Agent Configuration

Settings for a registry client, loaded from environment variables.
Variables can also be placed in a .env file in the working directory;
real environment variables take precedence over the file.

Environment variables:
    AMQP_URL: RabbitMQ URL, amqp:// or amqps:// (required)
    SERVICE_NAME: Name of the service to register (required)
    SERVICE_VERSION: Service version, e.g. 1.2.0 (required)
    HEARTBEAT_INTERVAL: Milliseconds between heartbeats (default 10000, min 1000)
    API_QUEUE: Queue for heartbeat and API traffic (default api_services_queue)
    REGISTRY_QUEUE: Queue for registry messages (default registry_office)
"""

import os
from typing import Mapping

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError

from registry_agent.exceptions import ConfigurationError
from registry_agent.queue.ports import DEFAULT_API_QUEUE, DEFAULT_REGISTRY_QUEUE

MIN_HEARTBEAT_INTERVAL_MS = 1000

# Environment variable -> settings field
ENV_FIELDS = {
    "AMQP_URL": "amqp_url",
    "SERVICE_NAME": "service_name",
    "SERVICE_VERSION": "version",
    "HEARTBEAT_INTERVAL": "heartbeat_interval",
    "API_QUEUE": "api_queue",
    "REGISTRY_QUEUE": "registry_queue",
}


class RegistrySettings(BaseModel):
    """Validated registry client settings."""
    amqp_url: str = Field(
        ...,
        pattern=r"^amqps?://",
        description="AMQP URI for connecting to RabbitMQ"
    )
    service_name: str = Field(
        ...,
        min_length=1,
        description="Name of the service to register"
    )
    version: str = Field(
        ...,
        min_length=1,
        description="Service version in SemVer format"
    )
    heartbeat_interval: int = Field(
        default=10000,
        ge=MIN_HEARTBEAT_INTERVAL_MS,
        description="Interval for sending heartbeat messages in ms"
    )
    api_queue: str = Field(
        default=DEFAULT_API_QUEUE,
        min_length=1,
        description="Name of the queue for heartbeat and API requests"
    )
    registry_queue: str = Field(
        default=DEFAULT_REGISTRY_QUEUE,
        min_length=1,
        description="Name of the queue for registry messages"
    )

    class Config:
        frozen = True


def settings_from_env(
    env: Mapping[str, str] | None = None,
    dotenv: bool = True,
) -> RegistrySettings:
    """
    Create RegistrySettings from environment variables.

    Args:
        env: Mapping to read instead of os.environ
        dotenv: Load a .env file into os.environ first (ignored when env is given)

    Raises:
        ConfigurationError: If a variable is missing or invalid
    """
    if env is None:
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))
        env = os.environ

    data = {
        field_name: env[var]
        for var, field_name in ENV_FIELDS.items()
        if env.get(var) not in (None, "")
    }

    try:
        return RegistrySettings(**data)
    except ValidationError as e:
        field_to_var = {v: k for k, v in ENV_FIELDS.items()}
        problems = "; ".join(
            f"{field_to_var.get(str(err['loc'][0]), err['loc'][0])}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Config validation error: {problems}") from e
