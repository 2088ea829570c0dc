"""
Container Lifecycle Monitor

Watches container termination events for the lifetime of the process.

- exit code 0: the runner finished its job; the container is removed
- any other exit code: logged as an error, the container is kept for postmortem
- unreadable exit code: the parse error is logged, nothing is cleaned up
"""

import asyncio
import logging
import re
from collections import Counter
from enum import Enum

from runner_provisioner.contracts.types import TerminationEvent
from runner_provisioner.engines.base import EngineClient, EventSubscription
from runner_provisioner.errors import EngineError, ExitCodeParseError

logger = logging.getLogger(__name__)

# containerExitCode => podman, exitCode => docker
EXIT_CODE_ATTRIBUTES = ("containerExitCode", "exitCode")

RESUBSCRIBE_DELAY = 1.0

_INTEGER = re.compile(r"[+-]?[0-9]+")


class ExitOutcome(str, Enum):
    """Classification of a container termination."""

    EXITED_CLEAN = "exited_clean"
    EXITED_ERROR = "exited_error"
    EXIT_CODE_UNREADABLE = "exit_code_unreadable"


def read_exit_code(event: TerminationEvent) -> int:
    """
    Read the exit code of a terminated container.

    The first non-empty attribute from EXIT_CODE_ATTRIBUTES is used.

    Raises:
        ExitCodeParseError: if no attribute holds an integer
    """
    raw = ""
    for key in EXIT_CODE_ATTRIBUTES:
        raw = event.attributes.get(key, "")
        if raw:
            break

    if not _INTEGER.fullmatch(raw):
        raise ExitCodeParseError(
            f"Cannot parse exit code {raw!r} of container {event.short_id}: invalid syntax",
            code="BAD_EXIT_CODE",
            details={"container_id": event.container_id, "attributes": dict(event.attributes)},
        )
    return int(raw)


class LifecycleMonitor:
    """
    Consumes the engine termination event stream in one dedicated task.

    The subscription is opened in start() so a failure there stops the
    process before it serves traffic.
    """

    def __init__(self, engine: EngineClient):
        self.engine = engine
        self.outcomes: Counter = Counter()
        self._subscription: EventSubscription | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """
        Subscribe to termination events and start consuming them.

        Raises:
            EngineError: if the subscription cannot be established
        """
        if self._task is not None:
            raise RuntimeError("Lifecycle monitor already started")

        self._subscription = await self.engine.subscribe_events()
        self._task = asyncio.create_task(self._run(), name="lifecycle-monitor")

    async def _run(self) -> None:
        while True:
            try:
                async for event in self._subscription:
                    await self._handle_safely(event)
                logger.error("Container event stream ended")
            except EngineError as e:
                logger.error(f"{e}")
            except Exception as e:
                logger.error(f"Container event stream failed: {e}", exc_info=True)

            await self._close_subscription()
            await asyncio.sleep(RESUBSCRIBE_DELAY)

            try:
                self._subscription = await self.engine.subscribe_events()
            except EngineError as e:
                logger.error(f"Lifecycle monitoring stopped, cannot resubscribe to container events: {e}")
                return

            logger.info("Resubscribed to container events")

    async def _handle_safely(self, event: TerminationEvent) -> None:
        try:
            await self.handle(event)
        except Exception as e:
            logger.error(
                f"Failed to handle termination of container {event.short_id}: {e}",
                exc_info=True,
            )

    async def handle(self, event: TerminationEvent) -> ExitOutcome:
        """Classify a termination event and clean up when the exit was clean."""
        try:
            exit_code = read_exit_code(event)
        except ExitCodeParseError as e:
            logger.error(f"{e}")
            outcome = ExitOutcome.EXIT_CODE_UNREADABLE
            self.outcomes[outcome] += 1
            return outcome

        if exit_code != 0:
            logger.error(
                f"Container {event.short_id} terminated with exit code {exit_code}",
                extra={"container_id": event.container_id, "exit_code": exit_code},
            )
            logger.error("To find out what happened, please inspect the container logs")
            outcome = ExitOutcome.EXITED_ERROR
        else:
            logger.info(f"Container {event.short_id} terminated with exit code {exit_code}")
            await self.engine.remove_container(event.container_id)
            outcome = ExitOutcome.EXITED_CLEAN

        self.outcomes[outcome] += 1
        return outcome

    async def _close_subscription(self) -> None:
        if self._subscription is not None:
            try:
                await self._subscription.aclose()
            except Exception as e:
                logger.warning(f"Error closing event subscription: {e}")
            self._subscription = None

    async def stop(self) -> None:
        """Cancel the monitor task and release the subscription."""
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        await self._close_subscription()
        logger.info("Lifecycle monitor stopped")
