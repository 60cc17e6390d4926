"""
Unit tests for the logging middleware.
"""

import logging

import pytest

from conftest import BASE_URL
from external_task_client.client import Client
from external_task_client.middlewares import LoggerMiddleware, logger


class TestLoggerMiddleware:
    """Tests for LoggerMiddleware."""

    def test_subscribes_to_client_events(self, metrics):
        """Test the default logger listens to every client event."""
        client = Client(base_url=BASE_URL, auto_poll=False, use=logger, metrics=metrics)

        for event in ("subscribe", "unsubscribe", "poll:start", "poll:success", "poll:error"):
            assert client.events.listeners(event), event
        assert client.events.listeners("complete:success")
        assert client.events.listeners("handle_failure:error")

    def test_level_filters_events(self, metrics):
        """Test a level-filtered logger skips lower-level events."""
        client = Client(base_url=BASE_URL, auto_poll=False, use=logger.level("error"), metrics=metrics)

        assert client.events.listeners("poll:error")
        assert client.events.listeners("complete:error")
        assert not client.events.listeners("poll:start")
        assert not client.events.listeners("complete:success")

    def test_unknown_level(self):
        """Test unknown level names are rejected."""
        with pytest.raises(ValueError):
            logger.level("verbose")

    def test_level_returns_new_instance(self):
        """Test level() leaves the default logger untouched."""
        filtered = logger.level("warning")

        assert isinstance(filtered, LoggerMiddleware)
        assert filtered.min_level == logging.WARNING
        assert logger.min_level == logging.DEBUG

    def test_listener_runs_on_events(self, metrics):
        """Test the listeners accept the emitted arguments."""
        client = Client(base_url=BASE_URL, auto_poll=False, use=logger, metrics=metrics)

        client.subscribe("foo", lambda context: None).unsubscribe()
        client.events.emit("poll:success", [])
        client.events.emit("poll:error", RuntimeError("down"))
