"""
Pytest configuration and fixtures for gelf-relay test suite.
"""

from unittest.mock import MagicMock

import pytest
import requests

from src.server import Server


@pytest.fixture
def app(set_test_env):
    """Create and configure a test Flask application instance."""
    server = Server()
    server.app.config["TESTING"] = True
    server.app.config["SERVER_INSTANCE"] = server  # Store server instance for tests
    yield server.app
    server.shutdown()


@pytest.fixture
def client(app):
    """Create a Flask test client."""
    return app.test_client()


@pytest.fixture
def graylog_response():
    """Build a fake requests.Response as returned by a Graylog GELF HTTP input."""

    def _make_response(status_code=202, text=""):
        response = MagicMock(spec=requests.Response)
        response.status_code = status_code
        response.ok = status_code < 400
        response.text = text
        return response

    return _make_response


@pytest.fixture
def mock_post(mocker, graylog_response):
    """Patch requests.post so no record leaves the test process."""
    return mocker.patch("requests.post", return_value=graylog_response())


@pytest.fixture(autouse=True)
def set_test_env(monkeypatch):
    """Set environment variables for testing."""
    monkeypatch.setenv("GRAYLOG_HOST", "graylog.example.com")
    monkeypatch.setenv("GRAYLOG_PORT", "12202")
    monkeypatch.setenv("DEFAULT_SHORT_MESSAGE", "relayed event")
    monkeypatch.setenv("DEBUG_LEVEL", "DEBUG")
    monkeypatch.setenv("TESTING", "true")  # Disable signal handlers in tests
    # Don't set GELF_SERVER to avoid network calls in tests
    monkeypatch.delenv("GELF_SERVER", raising=False)
