"""
Container Engines

Engine client implementations for Docker and Podman.
"""

from runner_provisioner.engines.base import (
    RUNNER_LABELS,
    EngineClient,
    EventSubscription,
    split_image_name,
)
from runner_provisioner.engines.detect import (
    create_engine_client,
    resolve_endpoint,
    which_container_engine,
)
from runner_provisioner.engines.docker import DockerEngineClient
from runner_provisioner.engines.podman import PodmanEngineClient

__all__ = [
    "RUNNER_LABELS",
    "EngineClient",
    "EventSubscription",
    "split_image_name",
    "create_engine_client",
    "resolve_endpoint",
    "which_container_engine",
    "DockerEngineClient",
    "PodmanEngineClient",
]
