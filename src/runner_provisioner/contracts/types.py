"""
Provisioner Types

Value objects passed between ingestion, the worker pool, the engine client
and the lifecycle monitor.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

SHORT_ID_LENGTH = 12


def short_id(container_id: str) -> str:
    """Return the first 12 characters of a container ID."""
    return container_id[:SHORT_ID_LENGTH]


class EngineKind(str, Enum):
    """Container engines the provisioner can talk to."""

    PODMAN = "podman"
    DOCKER = "docker"
    NONE = "none"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class EngineEndpoint:
    """
    Resolved container engine control socket.

    Resolved once at process start. When kind is NONE no provisioning may
    proceed.
    """

    kind: EngineKind
    socket_path: str

    @property
    def available(self) -> bool:
        return self.kind != EngineKind.NONE


class ContainerStatus(str, Enum):
    """Lifecycle states of a runner container as seen by the provisioner."""

    CREATED = "created"
    RUNNING = "running"
    TERMINATED = "terminated"


@dataclass
class Container:
    """A container created by the engine on behalf of a worker."""

    id: str
    status: ContainerStatus = ContainerStatus.CREATED

    @property
    def short_id(self) -> str:
        return short_id(self.id)


@dataclass(frozen=True)
class ProvisioningRequest:
    """
    A request to run one runner container.

    Created by webhook ingestion for a queued job and consumed exactly once
    by a worker. Never persisted.
    """

    image: str
    env: tuple[str, ...]
    job_id: int | None = None


@dataclass(frozen=True)
class TerminationEvent:
    """
    A container "die" event from the engine event stream.

    The exit code is kept as raw actor attributes; it may be missing or
    malformed and the lifecycle monitor decides what that means.
    """

    container_id: str
    attributes: Mapping[str, str] = field(default_factory=dict)

    @property
    def short_id(self) -> str:
        return short_id(self.container_id)
