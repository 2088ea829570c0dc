"""
Runner Image Resolver

Makes sure the runner image is present locally, pulling it if needed.
Runs once at startup so a missing image stops the process before any
webhook is accepted.
"""

import logging

from runner_provisioner.engines.base import EngineClient, split_image_name
from runner_provisioner.errors import EngineError, ImageResolutionError

logger = logging.getLogger(__name__)


class ImageResolver:
    def __init__(self, engine: EngineClient):
        self.engine = engine

    async def ensure_image(self, name: str) -> bool:
        """
        Ensure an image exists locally.

        Returns:
            True when the image is present or was pulled

        Raises:
            ImageNameError: if the name is not "repository:tag" (nothing is pulled)
            ImageResolutionError: if the pull fails
        """
        try:
            if await self.engine.inspect_image(name):
                logger.info(f"Container image {name} found.")
                return True
        except EngineError as e:
            logger.warning(f"Unable to inspect container image {name}: {e}")

        repository, tag = split_image_name(name)

        logger.warning(f"Container image {name} not found locally, attempting to pull")

        try:
            await self.engine.pull_image(repository, tag)
        except EngineError as e:
            raise ImageResolutionError(
                f"failed to pull container image {name}: {e}",
                code="PULL_FAILED",
                details={"image": name},
            ) from e

        logger.info(f"Container image {name} pulled successfully.")
        return True
