"""
Tests for environment configuration.
"""

import pytest

from runner_provisioner.errors import ConfigurationError
from runner_provisioner.settings import get_settings, load_settings, reset_settings


@pytest.fixture
def required_env(monkeypatch):
    monkeypatch.setenv("GH_RUNNER_REPO_PATH", "acme/widgets")
    monkeypatch.setenv("GH_RUNNER_CT_IMAGE", "ghcr.io/acme/runner:latest")
    monkeypatch.setenv("GH_RUNNER_TOKEN", "AABBCC")


class TestLoadSettings:
    """Tests for loading settings from the environment."""

    def test_defaults(self, required_env):
        """Test optional settings take their defaults."""
        settings = load_settings()

        assert settings.gh_runner_repo_path == "acme/widgets"
        assert settings.gh_runner_ct_image == "ghcr.io/acme/runner:latest"
        assert settings.port == 3000
        assert settings.queue_capacity == 100
        assert settings.worker_count == 5
        assert settings.gh_webhook_secret == ""
        assert settings.ct_engine == ""
        assert settings.gh_api_url == "https://api.github.com"

    def test_admission_overrides(self, required_env, monkeypatch):
        """Test queue capacity and worker count come from their variables."""
        monkeypatch.setenv("PROVISIONER_QUEUE_CAPACITY", "10")
        monkeypatch.setenv("PROVISIONER_WORKERS", "2")

        settings = load_settings()

        assert settings.queue_capacity == 10
        assert settings.worker_count == 2

    def test_missing_repo_path(self, monkeypatch):
        """Test missing GH_RUNNER_REPO_PATH is reported by name."""
        monkeypatch.setenv("GH_RUNNER_CT_IMAGE", "runner:latest")
        monkeypatch.setenv("GH_RUNNER_TOKEN", "AABBCC")

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings()

        assert "GH_RUNNER_REPO_PATH" in str(exc_info.value)

    def test_missing_image(self, monkeypatch):
        """Test missing GH_RUNNER_CT_IMAGE is reported by name."""
        monkeypatch.setenv("GH_RUNNER_REPO_PATH", "acme/widgets")
        monkeypatch.setenv("GH_RUNNER_TOKEN", "AABBCC")

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings()

        assert "GH_RUNNER_CT_IMAGE" in str(exc_info.value)

    def test_blank_repo_path(self, required_env, monkeypatch):
        """Test an empty repository path is rejected."""
        monkeypatch.setenv("GH_RUNNER_REPO_PATH", "  ")

        with pytest.raises(ConfigurationError):
            load_settings()

    def test_credential_source_required(self, monkeypatch):
        """Test one of GH_API_TOKEN or GH_RUNNER_TOKEN must be set."""
        monkeypatch.setenv("GH_RUNNER_REPO_PATH", "acme/widgets")
        monkeypatch.setenv("GH_RUNNER_CT_IMAGE", "runner:latest")

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings()

        assert "GH_API_TOKEN" in str(exc_info.value)

    def test_api_token_is_enough(self, monkeypatch):
        """Test GH_API_TOKEN alone satisfies the credential requirement."""
        monkeypatch.setenv("GH_RUNNER_REPO_PATH", "acme/widgets")
        monkeypatch.setenv("GH_RUNNER_CT_IMAGE", "runner:latest")
        monkeypatch.setenv("GH_API_TOKEN", "ghp_example")

        assert load_settings().gh_api_token == "ghp_example"

    def test_invalid_port_falls_back(self, required_env, monkeypatch):
        """Test an unparseable PORT uses the default."""
        monkeypatch.setenv("PORT", "abc")

        assert load_settings().port == 3000

    def test_port_override(self, required_env, monkeypatch):
        """Test PORT sets the listen port."""
        monkeypatch.setenv("PORT", "8080")

        assert load_settings().port == 8080

    def test_unknown_engine(self, required_env, monkeypatch):
        """Test CT_ENGINE only accepts podman or docker."""
        monkeypatch.setenv("CT_ENGINE", "containerd")

        with pytest.raises(ConfigurationError):
            load_settings()

    def test_zero_workers_rejected(self, required_env, monkeypatch):
        """Test the worker pool needs at least one worker."""
        monkeypatch.setenv("PROVISIONER_WORKERS", "0")

        with pytest.raises(ConfigurationError):
            load_settings()

    def test_log_level_case_insensitive(self, required_env, monkeypatch):
        """Test LOG_LEVEL accepts lowercase names."""
        monkeypatch.setenv("LOG_LEVEL", "debug")

        assert load_settings().log_level == "DEBUG"


class TestGetSettings:
    """Tests for the cached settings instance."""

    def test_cached(self, required_env):
        """Test get_settings returns the same instance until reset."""
        first = get_settings()

        assert get_settings() is first

        reset_settings()
        assert get_settings() is not first
