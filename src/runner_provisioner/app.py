"""
Runner Provisioner Service

FastAPI app that turns GitHub workflow_job webhooks into ephemeral runner
containers.

Responsibilities:
- Verify webhook signature
- Admit queued jobs into a bounded queue (return 200 quickly)
- Provision runner containers with a fixed pool of workers
- Remove runner containers that exit cleanly
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from runner_provisioner import __version__
from runner_provisioner.engines.base import EngineClient
from runner_provisioner.provisioner import Provisioner
from runner_provisioner.service.admission import AdmissionQueue
from runner_provisioner.service.credentials import RegistrationTokenProvider
from runner_provisioner.settings import Settings, get_settings
from runner_provisioner.webhook.router import router as webhook_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    engine: EngineClient | None = None,
    token_provider: RegistrationTokenProvider | None = None,
    queue: AdmissionQueue | None = None,
) -> FastAPI:
    """
    Build the application.

    The engine client is resolved from settings at startup unless one is
    passed in.
    """
    if settings is None:
        settings = get_settings()
    provisioner = Provisioner(
        settings,
        engine=engine,
        token_provider=token_provider,
        queue=queue,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await provisioner.startup()
        except Exception as e:
            logger.critical(f"Failed to start provisioner: {e}")
            await provisioner.shutdown()
            raise

        try:
            yield
        finally:
            await provisioner.shutdown()

    app = FastAPI(
        title="Runner Provisioner",
        description="Provisions ephemeral GitHub Actions runner containers from workflow_job webhooks",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.provisioner = provisioner
    app.include_router(webhook_router)

    return app
