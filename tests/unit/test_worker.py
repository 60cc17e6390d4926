"""
Unit tests for the worker bootstrap.
"""

import asyncio

import pytest
import structlog

from conftest import LOG_CONTEXTS
from external_task_client.config import Settings
from external_task_client.interceptors import BasicAuthInterceptor
from external_task_client.worker.main import build_client, load_middleware, run_async


class TestLoadMiddleware:
    """Tests for load_middleware."""

    def test_load(self):
        """Test a module:callable path is imported."""
        middleware = load_middleware("conftest:subscribe_echo")

        assert callable(middleware)
        assert middleware.__name__ == "subscribe_echo"

    @pytest.mark.parametrize("path", ["conftest", ":subscribe_echo", "conftest:"])
    def test_malformed_path(self, path):
        """Test paths without both parts are rejected."""
        with pytest.raises(ValueError):
            load_middleware(path)

    def test_not_callable(self):
        """Test paths naming a non-callable are rejected."""
        with pytest.raises(ValueError):
            load_middleware("conftest:BASE_URL")


class TestBuildClient:
    """Tests for build_client."""

    @pytest.mark.asyncio
    async def test_build_client(self):
        """Test credentials and middlewares from settings are applied."""
        settings = Settings(
            _env_file=None,
            base_url="http://localhost:8080/engine-rest",
            username="demo",
            password="demo",
            auto_poll=False,
            middlewares=["conftest:subscribe_echo"],
        )

        client = build_client(settings)
        try:
            assert client.options.auto_poll is False
            assert client.registry.active_topics() == ["echo"]
            assert isinstance(client.engine_service.interceptors[0], BasicAuthInterceptor)
        finally:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_build_client_without_credentials(self):
        """Test no interceptor is installed without credentials."""
        settings = Settings(_env_file=None, base_url="http://localhost:8080/engine-rest", auto_poll=False)

        client = build_client(settings)
        try:
            assert client.engine_service.interceptors == []
        finally:
            await client.aclose()


class TestRunAsync:
    """Tests for the worker run loop."""

    @pytest.mark.asyncio
    async def test_worker_id_bound_to_log_context(self):
        """Test the worker id is bound while running and cleared afterwards."""
        LOG_CONTEXTS.clear()
        settings = Settings(
            _env_file=None,
            base_url="http://localhost:8080/engine-rest",
            worker_id="worker-7",
            middlewares=["conftest:record_log_context"],
        )
        shutdown = asyncio.Event()
        shutdown.set()

        await run_async(settings, shutdown=shutdown)

        assert LOG_CONTEXTS == [{"worker_id": "worker-7"}]
        assert "worker_id" not in structlog.contextvars.get_contextvars()
