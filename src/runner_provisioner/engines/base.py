"""
Container Engine Base

Abstract interface for container engine clients.
Implementations: Docker Engine API, Podman (Docker-compatible API).
"""

import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Sequence

from runner_provisioner.contracts.types import Container, ContainerStatus, EngineKind, TerminationEvent
from runner_provisioner.errors import ImageNameError

logger = logging.getLogger(__name__)

# Labels set on every runner container so other tooling can tell them apart
RUNNER_LABELS = {
    "kind": "runner",
    "platform": "github",
}


def split_image_name(name: str) -> tuple[str, str]:
    """
    Split an image name into repository and tag.

    Exactly one colon is accepted. Digests and registry hosts with a port
    are not supported.

    Raises:
        ImageNameError: if the name is not "repository:tag"
    """
    parts = name.split(":")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ImageNameError(
            f"invalid image name format: {name} (expected repo:tag)",
            code="BAD_IMAGE_NAME",
            details={"image": name},
        )
    return parts[0], parts[1]


class EventSubscription(ABC):
    """
    A live subscription to container termination events.

    Iterating yields TerminationEvent objects for as long as the engine
    keeps the stream open.
    """

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[TerminationEvent]:
        ...

    @abstractmethod
    async def aclose(self) -> None:
        """Stop receiving events and release the connection."""
        ...


class EngineClient(ABC):
    """
    Abstract interface for container engine clients.

    One client is shared by the worker pool, the lifecycle monitor and the
    image resolver; implementations must be safe for concurrent use.
    """

    kind: EngineKind

    @abstractmethod
    async def create_container(self, image: str, env: Sequence[str]) -> Container:
        """
        Create a runner container.

        Args:
            image: Image name ("repository:tag")
            env: Environment entries ("KEY=value")

        Returns:
            The created container

        Raises:
            CreationError: if the engine rejects the request
        """
        ...

    @abstractmethod
    async def start_container(self, container_id: str) -> None:
        """
        Start a created container.

        Raises:
            StartError: if the engine cannot start the container
        """
        ...

    @abstractmethod
    async def inspect_image(self, name: str) -> bool:
        """Return True if the image is present locally."""
        ...

    @abstractmethod
    async def pull_image(self, repository: str, tag: str) -> None:
        """
        Pull an image from its registry.

        Raises:
            EngineError: if the pull fails
        """
        ...

    @abstractmethod
    async def remove_container(self, container_id: str) -> bool:
        """
        Remove a container. Best effort: failures are logged, never raised.

        Returns:
            True if the container was removed
        """
        ...

    @abstractmethod
    async def subscribe_events(self) -> EventSubscription:
        """
        Open the termination event stream.

        The subscription is established before returning.

        Raises:
            EngineError: if the stream cannot be opened
        """
        ...

    async def close(self) -> None:
        """Release client resources."""

    async def provision(self, image: str, env: Sequence[str]) -> Container:
        """
        Create and start a runner container.

        A container that was created but failed to start is left in place.
        """
        container = await self.create_container(image, env)
        await self.start_container(container.id)
        container.status = ContainerStatus.RUNNING
        logger.info(f"Container started with ID: {container.short_id}")
        return container
