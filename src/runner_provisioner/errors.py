"""
Provisioner Errors

Error hierarchy for the runner provisioner.

Errors raised before the HTTP listener starts are fatal and terminate the
process. Errors raised while serving traffic or handling termination events
are contained to the request/event that caused them and only logged.
"""

from typing import Any


class ProvisionerError(Exception):
    """Base error for the runner provisioner."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class ConfigurationError(ProvisionerError):
    """A required setting is missing or invalid. Fatal at startup."""


class SignatureError(ProvisionerError):
    """Webhook signature is missing or does not match. Answered with 401."""


class ParseError(ProvisionerError):
    """Webhook body is not a valid workflow job event. Answered with 400."""


class EngineError(ProvisionerError):
    """Error returned by the container engine API."""


class EngineUnavailableError(EngineError):
    """No container engine socket was found. Fatal at startup."""


class CreationError(EngineError):
    """The engine rejected a container creation request."""


class StartError(EngineError):
    """The engine could not transition a container to running."""


class ImageResolutionError(ProvisionerError):
    """Runner image is neither present locally nor pullable. Fatal at startup."""


class ImageNameError(ImageResolutionError):
    """Image name cannot be split into exactly repository and tag."""


class CredentialError(ProvisionerError):
    """Runner registration token could not be obtained."""


class ExitCodeParseError(ProvisionerError):
    """Container exit code attribute is absent or not an integer."""


class QueueClosed(ProvisionerError):
    """Admission queue was closed and has no more requests."""
