"""
Container Worker Pool

Fixed number of long-lived workers draining the admission queue.

Each worker provisions one container at a time, so at most `size`
create/start calls reach the engine concurrently regardless of queue depth.
"""

import asyncio
import logging

from runner_provisioner.contracts.types import ProvisioningRequest
from runner_provisioner.engines.base import EngineClient
from runner_provisioner.errors import EngineError, QueueClosed
from runner_provisioner.service.admission import AdmissionQueue

logger = logging.getLogger(__name__)

DEFAULT_WORKER_COUNT = 5
DEFAULT_GRACE_PERIOD = 10.0


class WorkerPool:
    """
    Pool of container workers.

    Started once at boot and never resized.
    """

    def __init__(
        self,
        queue: AdmissionQueue,
        engine: EngineClient,
        size: int = DEFAULT_WORKER_COUNT,
    ):
        if size < 1:
            raise ValueError("size must be at least 1")
        self.queue = queue
        self.engine = engine
        self.size = size
        self._tasks: list[asyncio.Task] = []

        # Counters
        self.in_flight = 0
        self.max_in_flight = 0
        self.provisioned = 0
        self.failed = 0

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        """Launch the workers on the running event loop."""
        if self._tasks:
            raise RuntimeError("Worker pool already started")

        for index in range(self.size):
            task = asyncio.create_task(self._run(index), name=f"container-worker-{index}")
            self._tasks.append(task)

        logger.info(f"Started {self.size} container workers")

    async def _run(self, index: int) -> None:
        """Worker loop: dequeue one request, provision it, repeat."""
        while True:
            try:
                request = await self.queue.get()
            except QueueClosed:
                logger.debug(f"Container worker {index} stopping, queue closed")
                return

            await self.process(request)

    async def process(self, request: ProvisioningRequest) -> bool:
        """
        Provision a single request.

        Failures are logged and swallowed so the worker keeps running.

        Returns:
            True if the container was created and started
        """
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)

        try:
            await self.engine.provision(request.image, request.env)
            self.provisioned += 1
            return True

        except EngineError as e:
            self.failed += 1
            logger.error(
                f"{e}",
                extra={"job_id": request.job_id, "code": e.code},
            )
            return False

        except Exception as e:
            self.failed += 1
            logger.error(
                f"Unexpected error provisioning container for job {request.job_id}: {e}",
                exc_info=True,
            )
            return False

        finally:
            self.in_flight -= 1

    async def stop(self, grace_period: float = DEFAULT_GRACE_PERIOD) -> None:
        """
        Close the queue and stop the workers.

        In-flight provisioning gets `grace_period` seconds to finish before
        the workers are cancelled.
        """
        self.queue.close()

        if not self._tasks:
            return

        _done, pending = await asyncio.wait(self._tasks, timeout=grace_period)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Cancelled {len(pending)} container workers still provisioning")
            await asyncio.gather(*pending, return_exceptions=True)

        self._tasks.clear()
        logger.info("Container workers stopped")
