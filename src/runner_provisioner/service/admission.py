"""
Admission Queue

Bounded FIFO buffer between webhook ingestion and the worker pool.

Offering never blocks: a request is either admitted immediately or refused
because the queue is full. Refusing is the only backpressure the
provisioner applies; the webhook sender is never told to retry.
"""

import asyncio
import logging

from runner_provisioner.contracts.types import ProvisioningRequest
from runner_provisioner.errors import QueueClosed

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100

_CLOSED = object()


class AdmissionQueue:
    """
    Bounded queue of provisioning requests.

    Must be used from a single event loop. Admission order is preserved;
    with several consumers completion order is not.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        # Capacity is enforced in offer() so the close marker always fits
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self.admitted = 0
        self.dropped = 0

    def __len__(self) -> int:
        return self._queue.qsize() - (1 if self._closed else 0)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def full(self) -> bool:
        return len(self) >= self.capacity

    def offer(self, request: ProvisioningRequest) -> bool:
        """
        Try to admit a request without blocking.

        Returns:
            True if admitted, False if the queue is full or closed
        """
        if self._closed or self.full:
            self.dropped += 1
            return False

        self._queue.put_nowait(request)
        self.admitted += 1
        return True

    async def get(self) -> ProvisioningRequest:
        """
        Wait for the next request.

        Raises:
            QueueClosed: once the queue has been closed
        """
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker for the next waiting consumer
            self._queue.put_nowait(_CLOSED)
            raise QueueClosed("Admission queue is closed", code="QUEUE_CLOSED")
        return item

    def close(self) -> int:
        """
        Close the queue permanently.

        Requests still waiting are discarded. Consumers blocked in get()
        are woken with QueueClosed.

        Returns:
            Number of discarded requests
        """
        if self._closed:
            return 0

        discarded = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            discarded += 1

        self._closed = True
        self._queue.put_nowait(_CLOSED)

        if discarded:
            logger.warning(f"Admission queue closed, discarding {discarded} pending requests")
        return discarded
