"""
Pytest configuration for runner provisioner tests.

Provides in-memory stand-ins for the container engine and the registration
token provider, plus settings and webhook signing helpers.
"""

import asyncio
import json
from typing import Sequence

import pytest

from runner_provisioner.contracts.types import Container, EngineKind, TerminationEvent
from runner_provisioner.engines.base import EngineClient, EventSubscription
from runner_provisioner.errors import CredentialError, EngineError
from runner_provisioner.service.credentials import RegistrationTokenProvider
from runner_provisioner.settings import Settings, reset_settings

WEBHOOK_SECRET = "test_webhook_secret"
RUNNER_IMAGE = "ghcr.io/acme/runner:latest"
REPO_PATH = "acme/widgets"


class FakeSubscription(EventSubscription):
    """Event subscription fed from a list, then blocking until closed."""

    def __init__(self, events: Sequence[TerminationEvent] = (), end_after_events: bool = False):
        self._events = list(events)
        self._end_after_events = end_after_events
        self._closed = asyncio.Event()
        self.closed = False

    async def __aiter__(self):
        for event in self._events:
            yield event
        if not self._end_after_events:
            await self._closed.wait()

    async def aclose(self) -> None:
        self.closed = True
        self._closed.set()


class FakeEngine(EngineClient):
    """Records every engine call; behaviour is steered through attributes."""

    kind = EngineKind.DOCKER

    def __init__(self):
        self.images: set[str] = set()
        self.created: list[tuple[str, list[str]]] = []
        self.started: list[str] = []
        self.removed: list[str] = []
        self.pulled: list[tuple[str, str]] = []
        self.subscriptions: list[FakeSubscription] = []
        self.events: list[TerminationEvent] = []
        self.create_error: EngineError | None = None
        self.inspect_error: EngineError | None = None
        self.pull_error: EngineError | None = None
        self.subscribe_error: EngineError | None = None
        self.provision_delay = 0.0
        self.closed = False
        self._counter = 0

    async def create_container(self, image, env):
        if self.provision_delay:
            await asyncio.sleep(self.provision_delay)
        if self.create_error is not None:
            raise self.create_error
        self._counter += 1
        self.created.append((image, list(env)))
        return Container(id=f"{self._counter:064x}")

    async def start_container(self, container_id):
        self.started.append(container_id)

    async def inspect_image(self, name):
        if self.inspect_error is not None:
            raise self.inspect_error
        return name in self.images

    async def pull_image(self, repository, tag):
        self.pulled.append((repository, tag))
        if self.pull_error is not None:
            raise self.pull_error
        self.images.add(f"{repository}:{tag}")

    async def remove_container(self, container_id):
        self.removed.append(container_id)
        return True

    async def subscribe_events(self):
        if self.subscribe_error is not None:
            raise self.subscribe_error
        subscription = FakeSubscription(self.events)
        self.subscriptions.append(subscription)
        return subscription

    async def close(self):
        self.closed = True


class FakeTokenProvider(RegistrationTokenProvider):
    """Issues numbered tokens so tests can tell fresh tokens apart."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.issued = 0
        self.closed = False

    async def get_token(self) -> str:
        if self.fail:
            raise CredentialError("Bad credentials", code="401")
        self.issued += 1
        return f"registration-token-{self.issued}"

    async def close(self) -> None:
        self.closed = True


def make_event_body(action: str = "queued", job_id: int = 4242) -> bytes:
    return json.dumps(
        {
            "action": action,
            "workflow_job": {"id": job_id, "run_id": 1, "labels": ["self-hosted"]},
            "repository": {"full_name": REPO_PATH},
        }
    ).encode("utf-8")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Isolate settings from the developer's environment and .env file."""
    for name in (
        "GH_RUNNER_REPO_PATH",
        "GH_RUNNER_CT_IMAGE",
        "GH_API_TOKEN",
        "GH_RUNNER_TOKEN",
        "GH_API_URL",
        "GH_WEBHOOK_SECRET",
        "CT_ENGINE",
        "CT_ENGINE_SOCKET",
        "PORT",
        "PROVISIONER_QUEUE_CAPACITY",
        "PROVISIONER_WORKERS",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings():
    return Settings(
        gh_runner_repo_path=REPO_PATH,
        gh_runner_ct_image=RUNNER_IMAGE,
        gh_runner_token="static-token",
        gh_webhook_secret=WEBHOOK_SECRET,
    )


@pytest.fixture
def engine():
    fake = FakeEngine()
    fake.images.add(RUNNER_IMAGE)
    return fake


@pytest.fixture
def token_provider():
    return FakeTokenProvider()
