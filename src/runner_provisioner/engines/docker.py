"""
Docker Engine Client

Client for the Docker Engine API reached over a unix socket, built on the
Docker SDK. Podman exposes the same API through its compatibility layer.

The SDK is blocking, so every call runs in a worker thread.

Documentation: https://docker-py.readthedocs.io/
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Iterator, Sequence

import docker
from docker.errors import APIError, DockerException, ImageNotFound

from runner_provisioner.contracts.types import (
    Container,
    ContainerStatus,
    EngineKind,
    TerminationEvent,
    short_id,
)
from runner_provisioner.engines.base import RUNNER_LABELS, EngineClient, EventSubscription
from runner_provisioner.errors import CreationError, EngineError, StartError

logger = logging.getLogger(__name__)

TERMINATION_ACTION = "die"

EVENT_FILTERS = {"type": "container", "event": TERMINATION_ACTION}


def parse_termination_event(payload: Any) -> TerminationEvent | None:
    """
    Turn one decoded event from the engine stream into a TerminationEvent.

    Returns None for anything that is not a well-formed container "die" event.
    """
    if not isinstance(payload, dict):
        logger.warning(f"Ignoring malformed engine event: {payload!r:.200}")
        return None

    # Docker >= 1.22 sends "Action"; older Docker and Podman also send "status"
    action = payload.get("status") or payload.get("Action")

    actor = payload.get("Actor") or {}
    if not isinstance(actor, dict):
        logger.warning(f"Ignoring engine event with malformed Actor: {actor!r:.200}")
        return None

    container_id = payload.get("id") or actor.get("ID") or ""
    if not isinstance(container_id, str):
        logger.warning(f"Ignoring engine event with malformed container ID: {container_id!r:.200}")
        return None

    logger.info(f"Event received: {action} on container {short_id(container_id)}")

    if payload.get("Type", "container") != "container" or action != TERMINATION_ACTION:
        return None
    if not container_id:
        logger.warning("Termination event without container ID, ignoring")
        return None

    attributes = actor.get("Attributes") or {}
    if not isinstance(attributes, dict):
        logger.warning(f"Ignoring termination of {short_id(container_id)} with malformed attributes")
        return None

    return TerminationEvent(
        container_id=container_id,
        attributes={str(key): str(value) for key, value in attributes.items()},
    )


class DockerEventSubscription(EventSubscription):
    """Termination events read from the SDK's decoded event stream."""

    def __init__(self, stream: Iterator[Any]):
        self._stream = stream

    async def __aiter__(self) -> AsyncIterator[TerminationEvent]:
        while True:
            try:
                payload = await asyncio.to_thread(next, self._stream, None)
            except Exception as e:
                raise EngineError(f"Container event stream failed: {e}", code="STREAM_ERROR") from e

            if payload is None:
                return

            try:
                event = parse_termination_event(payload)
            except Exception as e:
                logger.warning(f"Ignoring engine event that could not be parsed: {e}")
                continue

            if event is not None:
                yield event

    async def aclose(self) -> None:
        close = getattr(self._stream, "close", None)
        if close is not None:
            await asyncio.to_thread(close)


class DockerEngineClient(EngineClient):
    """
    Docker Engine API client.

    One SDK client is bound to the engine socket and shared by all callers.
    It is created on first use, since connecting negotiates the API version.
    """

    kind = EngineKind.DOCKER

    def __init__(
        self,
        socket_path: str,
        client: docker.DockerClient | None = None,
    ):
        """
        Initialize the engine client.

        Args:
            socket_path: Path of the engine control socket
            client: Pre-built SDK client (used by tests)
        """
        self.socket_path = socket_path
        self._client = client
        self._lock = asyncio.Lock()

    def _connect(self) -> docker.DockerClient:
        # No timeout: engine calls and the event stream may block indefinitely
        return docker.DockerClient(base_url=f"unix://{self.socket_path}", timeout=None)

    async def _get_client(self) -> docker.DockerClient:
        """Get or create the SDK client."""
        if self._client is None:
            async with self._lock:
                if self._client is None:
                    try:
                        self._client = await asyncio.to_thread(self._connect)
                    except DockerException as e:
                        raise EngineError(
                            f"Cannot connect to container engine at {self.socket_path}: {e}",
                            code="CONNECT_FAILED",
                        ) from e
        return self._client

    async def close(self) -> None:
        """Close the SDK client."""
        if self._client is not None:
            client, self._client = self._client, None
            await asyncio.to_thread(client.close)

    def _error_message(self, error: APIError) -> str:
        """Extract the engine's message from an API error."""
        return str(error.explanation or error)

    def _error_code(self, error: DockerException) -> str:
        if isinstance(error, APIError) and error.status_code is not None:
            return str(error.status_code)
        return "HTTP_ERROR"

    def _describe(self, error: DockerException) -> str:
        if isinstance(error, APIError):
            return self._error_message(error)
        return str(error)

    async def create_container(self, image: str, env: Sequence[str]) -> Container:
        client = await self._get_client()

        try:
            created = await asyncio.to_thread(
                client.api.create_container,
                image,
                environment=list(env),
                labels=dict(RUNNER_LABELS),
            )
        except (DockerException, OSError) as e:
            raise CreationError(
                f"Encountered an error when creating container: {self._describe(e)}",
                code=self._error_code(e),
                details={"image": image},
            ) from e

        for warning in created.get("Warnings") or []:
            logger.warning(f"Engine warning on create: {warning}")

        container = Container(id=created["Id"], status=ContainerStatus.CREATED)
        logger.debug(f"Container created with ID: {container.short_id}")
        return container

    async def start_container(self, container_id: str) -> None:
        client = await self._get_client()

        # 304 (already started) is not an error for the SDK
        try:
            await asyncio.to_thread(client.api.start, container_id)
        except (DockerException, OSError) as e:
            raise StartError(
                f"Encountered an error when starting container {short_id(container_id)}: {self._describe(e)}",
                code=self._error_code(e),
                details={"container_id": container_id},
            ) from e

    async def inspect_image(self, name: str) -> bool:
        client = await self._get_client()

        try:
            await asyncio.to_thread(client.images.get, name)
        except ImageNotFound:
            return False
        except (DockerException, OSError) as e:
            raise EngineError(
                f"Failed to inspect image {name}: {self._describe(e)}",
                code=self._error_code(e),
                details={"image": name},
            ) from e
        return True

    def _pull(self, client: docker.DockerClient, repository: str, tag: str) -> None:
        # A failed pull is reported as an "error" entry inside the progress stream
        for progress in client.api.pull(repository, tag=tag, stream=True, decode=True):
            if isinstance(progress, dict) and progress.get("error"):
                raise EngineError(
                    f"Failed to pull image {repository}:{tag}: {progress['error']}",
                    code="PULL_FAILED",
                    details={"image": f"{repository}:{tag}"},
                )

    async def pull_image(self, repository: str, tag: str) -> None:
        client = await self._get_client()

        try:
            await asyncio.to_thread(self._pull, client, repository, tag)
        except (DockerException, OSError) as e:
            raise EngineError(
                f"Failed to pull image {repository}:{tag}: {self._describe(e)}",
                code=self._error_code(e),
                details={"image": f"{repository}:{tag}"},
            ) from e

    async def remove_container(self, container_id: str) -> bool:
        """Remove a container. Never raises."""
        try:
            client = await self._get_client()
            await asyncio.to_thread(client.api.remove_container, container_id)
        except EngineError as e:
            logger.error(f"Failed to remove container {short_id(container_id)}: {e}")
            return False
        except (DockerException, OSError) as e:
            logger.error(
                f"Failed to remove container {short_id(container_id)}: {self._describe(e)}",
                extra={"code": self._error_code(e)},
            )
            return False

        logger.info(f"Container {short_id(container_id)} removed")
        return True

    async def subscribe_events(self) -> EventSubscription:
        client = await self._get_client()

        try:
            stream = await asyncio.to_thread(client.events, decode=True, filters=dict(EVENT_FILTERS))
        except (DockerException, OSError) as e:
            raise EngineError(
                f"Unable to subscribe to container events: {self._describe(e)}",
                code=self._error_code(e),
            ) from e

        logger.info("Start listening on container events.")
        return DockerEventSubscription(stream)
