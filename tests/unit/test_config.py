"""
Unit tests for settings.
"""

import pytest

from external_task_client.config import Settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        """Test defaults when nothing is configured."""
        monkeypatch.delenv("EXTERNAL_TASK_BASE_URL", raising=False)

        settings = Settings(_env_file=None)

        assert settings.base_url is None
        assert settings.interval == 300
        assert settings.lock_duration == 50000
        assert settings.middlewares == []

    def test_environment(self, monkeypatch: pytest.MonkeyPatch):
        """Test values are read from EXTERNAL_TASK_* variables."""
        monkeypatch.setenv("EXTERNAL_TASK_BASE_URL", "http://engine:8080/engine-rest")
        monkeypatch.setenv("EXTERNAL_TASK_MAX_TASKS", "5")
        monkeypatch.setenv("EXTERNAL_TASK_AUTO_POLL", "false")
        monkeypatch.setenv("EXTERNAL_TASK_MIDDLEWARES", "app.handlers:register, app.audit:install")

        settings = Settings(_env_file=None)

        assert settings.base_url == "http://engine:8080/engine-rest"
        assert settings.max_tasks == 5
        assert settings.auto_poll is False
        assert settings.middlewares == ["app.handlers:register", "app.audit:install"]

    def test_client_options(self):
        """Test settings map onto client keyword arguments."""
        settings = Settings(_env_file=None, base_url="http://engine", worker_id="w1", async_response_timeout=10000)

        options = settings.client_options()

        assert options["base_url"] == "http://engine"
        assert options["worker_id"] == "w1"
        assert options["async_response_timeout"] == 10000
        assert "middlewares" not in options
