"""
Container Engine Detection

Resolves which engine socket to use by probing well-known paths, unless the
operator names the engine or the socket explicitly.
"""

import logging
import os

import docker

from runner_provisioner.contracts.types import EngineEndpoint, EngineKind
from runner_provisioner.engines.base import EngineClient
from runner_provisioner.engines.docker import DockerEngineClient
from runner_provisioner.engines.podman import PodmanEngineClient
from runner_provisioner.errors import ConfigurationError, EngineUnavailableError

logger = logging.getLogger(__name__)

ROOTFUL_PODMAN_SOCKET = "/run/podman/podman.sock"
DOCKER_SOCKET = "/var/run/docker.sock"


def socket_exists(path: str) -> bool:
    return os.path.exists(path)


def podman_socket_candidates() -> list[str]:
    """Podman socket paths in order of preference (rootless first)."""
    candidates = []
    runtime_dir = os.getenv("XDG_RUNTIME_DIR")
    if runtime_dir:
        candidates.append(os.path.join(runtime_dir, "podman", "podman.sock"))
    candidates.append(ROOTFUL_PODMAN_SOCKET)
    return candidates


def which_container_engine() -> EngineKind:
    """Autodetect the container engine installed on this host."""
    for path in podman_socket_candidates():
        if socket_exists(path):
            return EngineKind.PODMAN
    if socket_exists(DOCKER_SOCKET):
        return EngineKind.DOCKER
    return EngineKind.NONE


def get_container_socket_path(kind: EngineKind) -> str:
    """
    Return the control socket path for an engine kind.

    For Podman the first existing candidate wins; when none exists the
    rootless path is returned if XDG_RUNTIME_DIR is set, else the rootful one.
    """
    if kind == EngineKind.PODMAN:
        candidates = podman_socket_candidates()
        for path in candidates:
            if socket_exists(path):
                return path
        return candidates[0]
    if kind == EngineKind.DOCKER:
        return DOCKER_SOCKET
    return ""


def resolve_endpoint(engine: str = "", socket_path: str = "") -> EngineEndpoint:
    """
    Resolve the engine endpoint.

    Args:
        engine: Explicit engine kind ("podman" or "docker"), empty to autodetect
        socket_path: Explicit socket path, empty to use the engine default

    Raises:
        ConfigurationError: if the engine name is not recognised
    """
    if engine:
        try:
            kind = EngineKind(engine)
        except ValueError:
            raise ConfigurationError(
                f"Unknown container engine: {engine}",
                code="BAD_ENGINE",
            ) from None
    elif socket_path:
        # An explicit socket without a kind is treated as Docker-compatible
        kind = EngineKind.DOCKER
    else:
        kind = which_container_engine()

    logger.info(f"Container Engine: {kind}")

    if kind == EngineKind.NONE:
        return EngineEndpoint(kind=kind, socket_path="")
    return EngineEndpoint(kind=kind, socket_path=socket_path or get_container_socket_path(kind))


def create_engine_client(
    endpoint: EngineEndpoint,
    client: docker.DockerClient | None = None,
) -> EngineClient:
    """
    Build the engine client for an endpoint.

    Raises:
        EngineUnavailableError: if no engine was found
    """
    if not endpoint.available:
        raise EngineUnavailableError(
            "No container engine found on this server.",
            code="NO_ENGINE",
        )

    logger.info(f"Container engine socket path found: {endpoint.socket_path}")

    if endpoint.kind == EngineKind.PODMAN:
        return PodmanEngineClient(endpoint.socket_path, client=client)
    return DockerEngineClient(endpoint.socket_path, client=client)
