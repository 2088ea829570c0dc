"""
Provisioner

Owns the components of the provisioning pipeline and their startup order.

Startup is fail-fast: an unreachable engine, a missing image, or a failing
registration token request stops the process before it serves traffic.
"""

import logging

from runner_provisioner.contracts.events import WorkflowJobEvent
from runner_provisioner.contracts.types import ProvisioningRequest
from runner_provisioner.engines.base import EngineClient
from runner_provisioner.engines.detect import create_engine_client, resolve_endpoint
from runner_provisioner.service.admission import AdmissionQueue
from runner_provisioner.service.credentials import (
    GitHubRegistrationTokenProvider,
    RegistrationTokenProvider,
    StaticTokenProvider,
)
from runner_provisioner.service.images import ImageResolver
from runner_provisioner.service.monitor import LifecycleMonitor
from runner_provisioner.service.workers import WorkerPool
from runner_provisioner.settings import Settings
from runner_provisioner.webhook.signature import SignatureVerifier

logger = logging.getLogger(__name__)

REPO_PATH_ENV = "GH_RUNNER_REPO_PATH"
RUNNER_TOKEN_ENV = "GH_RUNNER_TOKEN"


def build_token_provider(settings: Settings) -> RegistrationTokenProvider:
    """Fetch tokens from GitHub when an API token is set, else use the static token."""
    if settings.gh_api_token:
        return GitHubRegistrationTokenProvider(
            repo_path=settings.gh_runner_repo_path,
            api_token=settings.gh_api_token,
            api_url=settings.gh_api_url,
        )
    return StaticTokenProvider(settings.gh_runner_token)


class Provisioner:
    """
    The provisioning pipeline.

    The admission queue is created here and shared by reference with the
    webhook endpoint (producer) and the worker pool (consumers).
    """

    def __init__(
        self,
        settings: Settings,
        engine: EngineClient | None = None,
        token_provider: RegistrationTokenProvider | None = None,
        queue: AdmissionQueue | None = None,
    ):
        self.settings = settings
        self.engine = engine
        if token_provider is None:
            token_provider = build_token_provider(settings)
        if queue is None:
            queue = AdmissionQueue(settings.queue_capacity)
        self.token_provider = token_provider
        self.queue = queue
        self.verifier = SignatureVerifier(settings.gh_webhook_secret)
        self.pool: WorkerPool | None = None
        self.monitor: LifecycleMonitor | None = None

    async def startup(self) -> None:
        """
        Bring the pipeline up.

        Raises:
            EngineUnavailableError, ImageResolutionError, CredentialError,
            EngineError: all fatal
        """
        settings = self.settings
        self.verifier.warn_if_disabled()

        if self.engine is None:
            endpoint = resolve_endpoint(settings.ct_engine, settings.ct_engine_socket)
            self.engine = create_engine_client(endpoint)

        # Fail fast when the image is missing rather than on the first job
        await ImageResolver(self.engine).ensure_image(settings.gh_runner_ct_image)

        # Fail fast when GitHub refuses to issue registration tokens
        await self.token_provider.get_token()

        self.pool = WorkerPool(self.queue, self.engine, size=settings.worker_count)
        self.pool.start()

        self.monitor = LifecycleMonitor(self.engine)
        await self.monitor.start()

        logger.info(
            "Provisioner started",
            extra={
                "engine": str(self.engine.kind),
                "image": settings.gh_runner_ct_image,
                "workers": settings.worker_count,
                "queue_capacity": self.queue.capacity,
            },
        )

    async def build_request(self, event: WorkflowJobEvent) -> ProvisioningRequest:
        """
        Build the provisioning request for a queued job.

        Raises:
            CredentialError: if no registration token can be obtained
        """
        token = await self.token_provider.get_token()
        return ProvisioningRequest(
            image=self.settings.gh_runner_ct_image,
            env=(
                f"{REPO_PATH_ENV}={self.settings.gh_runner_repo_path}",
                f"{RUNNER_TOKEN_ENV}={token}",
            ),
            job_id=event.job_id,
        )

    async def shutdown(self) -> None:
        """Stop workers and monitor, then release clients. Safe after a failed startup."""
        if self.pool is not None:
            await self.pool.stop()
        else:
            self.queue.close()
        if self.monitor is not None:
            await self.monitor.stop()
        if self.engine is not None:
            await self.engine.close()
        await self.token_provider.close()
        logger.info("Provisioner stopped")
