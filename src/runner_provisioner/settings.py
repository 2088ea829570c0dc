"""
Provisioner Settings

Configuration loaded from environment variables (and an optional .env file).
"""

import logging
from typing import Literal

from pydantic import AliasChoices, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from runner_provisioner.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3000
DEFAULT_QUEUE_CAPACITY = 100
DEFAULT_WORKER_COUNT = 5
DEFAULT_GITHUB_API_URL = "https://api.github.com"


class Settings(BaseSettings):
    """
    Runner provisioner settings.

    Required:
        GH_RUNNER_REPO_PATH: repository ("owner/repo") or organization ("owner")
        GH_RUNNER_CT_IMAGE: runner container image ("repository:tag")
        GH_API_TOKEN or GH_RUNNER_TOKEN: bearer token used to request
            registration tokens, or a pre-issued registration token
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # GitHub
    gh_runner_repo_path: str
    gh_runner_ct_image: str
    gh_api_token: str = ""
    gh_runner_token: str = ""
    gh_api_url: str = DEFAULT_GITHUB_API_URL
    gh_webhook_secret: str = ""

    # Container engine
    ct_engine: Literal["", "podman", "docker"] = ""
    ct_engine_socket: str = ""

    # Admission control
    queue_capacity: int = Field(
        DEFAULT_QUEUE_CAPACITY,
        validation_alias=AliasChoices("PROVISIONER_QUEUE_CAPACITY", "queue_capacity"),
    )
    worker_count: int = Field(
        DEFAULT_WORKER_COUNT,
        validation_alias=AliasChoices("PROVISIONER_WORKERS", "worker_count"),
    )

    # Server
    port: int = DEFAULT_PORT

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("gh_runner_repo_path", "gh_runner_ct_image")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @field_validator("port", mode="before")
    @classmethod
    def _port_or_default(cls, value):
        if isinstance(value, str):
            try:
                return int(value)
            except ValueError:
                logger.warning(f"Cannot convert PORT={value!r} into integer, using {DEFAULT_PORT}")
                return DEFAULT_PORT
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper(cls, value):
        return value.upper() if isinstance(value, str) else value

    @field_validator("queue_capacity", "worker_count")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @model_validator(mode="after")
    def _require_credential_source(self) -> "Settings":
        if not self.gh_api_token and not self.gh_runner_token:
            raise ValueError("either GH_API_TOKEN or GH_RUNNER_TOKEN must be set")
        return self


def load_settings(**overrides) -> Settings:
    """
    Load settings from the environment.

    Raises:
        ConfigurationError: if a required variable is missing or invalid
    """
    try:
        settings = Settings(**overrides)
    except ValidationError as e:
        problems = []
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"]).upper()
            problems.append(f"{location}: {error['msg']}" if location else error["msg"])
        raise ConfigurationError(
            "The server cannot run with the current environment: " + "; ".join(problems),
            code="CONFIG_INVALID",
            details={"errors": problems},
        ) from e

    logger.info(f"Current server repo path: {settings.gh_runner_repo_path}")
    return settings


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
