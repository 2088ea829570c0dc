"""
Runner Registration Credentials

Providers of the short-lived token a runner container uses to register
itself with GitHub.

Documentation: https://docs.github.com/en/rest/actions/self-hosted-runners
"""

import logging
from abc import ABC, abstractmethod
from urllib.parse import urlparse

import httpx

from runner_provisioner.errors import ConfigurationError, CredentialError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"


def registration_token_endpoint(repo_path: str) -> str:
    """
    Build the registration token endpoint for a repository or organization.

    Args:
        repo_path: "owner/repo", "owner", or a github.com URL of either

    Raises:
        ConfigurationError: if the path is neither a repository nor an organization
    """
    path = repo_path.strip()
    if "://" in path:
        path = urlparse(path).path
    path = path.strip("/").removesuffix(".git")
    parts = [part for part in path.split("/") if part]

    if len(parts) == 2:
        return f"/repos/{parts[0]}/{parts[1]}/actions/runners/registration-token"
    if len(parts) == 1:
        return f"/orgs/{parts[0]}/actions/runners/registration-token"

    raise ConfigurationError(
        f"Invalid repository path: {repo_path} (expected owner/repo or owner)",
        code="BAD_REPO_PATH",
    )


class RegistrationTokenProvider(ABC):
    """Source of runner registration tokens."""

    @abstractmethod
    async def get_token(self) -> str:
        """
        Return a registration token.

        Raises:
            CredentialError: if no token can be obtained
        """
        ...

    async def close(self) -> None:
        """Release provider resources."""


class StaticTokenProvider(RegistrationTokenProvider):
    """Hands out a registration token issued ahead of time."""

    def __init__(self, token: str):
        self.token = token

    async def get_token(self) -> str:
        if not self.token:
            raise CredentialError("No runner registration token configured", code="NO_TOKEN")
        return self.token


class GitHubRegistrationTokenProvider(RegistrationTokenProvider):
    """
    Requests a fresh registration token from the GitHub REST API for every call.

    Authenticates with a single bearer token (PAT or app installation token)
    that has administration rights on the repository or organization.
    """

    def __init__(
        self,
        repo_path: str,
        api_token: str,
        api_url: str = GITHUB_API_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint = registration_token_endpoint(repo_path)
        self.api_url = api_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.api_token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": GITHUB_API_VERSION,
                    "User-Agent": "runner-provisioner",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def get_token(self) -> str:
        client = await self._get_client()

        try:
            response = await client.post(self.endpoint)
        except httpx.RequestError as e:
            raise CredentialError(
                f"GitHub API request failed: {e}",
                code="HTTP_ERROR",
            ) from e

        if response.status_code >= 400:
            try:
                data = response.json()
            except ValueError:
                data = None
            if isinstance(data, dict) and data.get("message"):
                message = data["message"]
            else:
                message = response.text or "Unknown error"
            raise CredentialError(
                f"Unable to get runner registration token: {message}",
                code=str(response.status_code),
                details={"endpoint": self.endpoint},
            )

        try:
            token = response.json()["token"]
        except (ValueError, KeyError, TypeError) as e:
            raise CredentialError(
                "GitHub API returned no registration token",
                code="BAD_RESPONSE",
                details={"endpoint": self.endpoint},
            ) from e

        logger.debug("Runner registration token obtained", extra={"endpoint": self.endpoint})
        return token
