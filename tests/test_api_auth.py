"""
Tests for API authentication.

X-API-Key protects /scheduler/* when API_AUTH_ENABLED=true. Health, reading
and voting stay public.
"""

import importlib
import os
import pytest
from unittest.mock import patch

from fastapi.testclient import TestClient

from src.api import _engine_state
from src.infra.config import EngineConfig
from src.scheduler.service import StoryEngine
from src.story.generator import ChapterGenerator


# Test API key for testing
TEST_API_KEY = "test-secret-key-12345"


def _reload_app():
    """Reload auth and main so the app picks up the current environment."""
    import src.api.dependencies.auth as auth_module
    importlib.reload(auth_module)

    import src.api.main as main_module
    importlib.reload(main_module)
    return main_module.app


@pytest.fixture
def engine(memory_store, fake_provider, monkeypatch):
    engine = StoryEngine.create(
        EngineConfig(), store=memory_store, generator=ChapterGenerator(fake_provider)
    )
    monkeypatch.setattr(_engine_state, "_engine", engine)
    return engine


@pytest.fixture
def auth_client(engine):
    """Client for an app built with auth enabled."""
    env = {"API_AUTH_ENABLED": "true", "API_KEY": TEST_API_KEY}
    with patch.dict(os.environ, env, clear=False):
        app = _reload_app()

    yield TestClient(app)

    # Leave an auth-disabled app behind for other test modules
    with patch.dict(os.environ, {"API_AUTH_ENABLED": "false"}, clear=False):
        _reload_app()


class TestAuthDisabled:
    """Tests when authentication is disabled (default)."""

    def test_scheduler_open_without_key(self, engine):
        with patch.dict(os.environ, {"API_AUTH_ENABLED": "false"}, clear=False):
            client = TestClient(_reload_app())

        response = client.get("/scheduler/status")

        assert response.status_code == 200


class TestAuthEnabled:
    """Tests when authentication is enabled."""

    def test_health_no_auth_required(self, auth_client):
        assert auth_client.get("/health").status_code == 200

    def test_reading_and_voting_no_auth_required(self, auth_client, engine):
        engine.run_cycle_once()
        poll = engine.store.get_open_poll()

        assert auth_client.get("/chapters/latest").status_code == 200
        assert auth_client.get("/polls/open").status_code == 200
        assert auth_client.post(f"/polls/{poll.id}/vote", json={"choice": 0}).status_code == 200

    def test_scheduler_missing_key(self, auth_client):
        response = auth_client.get("/scheduler/status")

        assert response.status_code == 401
        assert "Missing API key" in response.json()["detail"]

    def test_scheduler_invalid_key(self, auth_client):
        response = auth_client.get("/scheduler/status", headers={"X-API-Key": "wrong-key"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid API key"

    def test_scheduler_valid_key(self, auth_client):
        response = auth_client.post(
            "/scheduler/run-once", headers={"X-API-Key": TEST_API_KEY}
        )

        assert response.status_code == 200
        assert response.json()["outcome"] == "BOOTSTRAPPED"

    def test_enabled_without_configured_key_rejects(self, engine):
        env = {"API_AUTH_ENABLED": "true", "API_KEY": ""}
        with patch.dict(os.environ, env, clear=False):
            client = TestClient(_reload_app())

        try:
            response = client.get("/scheduler/status", headers={"X-API-Key": "anything"})
            assert response.status_code == 401
        finally:
            with patch.dict(os.environ, {"API_AUTH_ENABLED": "false"}, clear=False):
                _reload_app()
