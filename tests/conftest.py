"""
Pytest configuration and shared fixtures.
"""

import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Generator, Optional

import pytest

from src.story.memory_store import InMemoryStoryStore
from src.story.model_provider import GenerationResult, ModelProvider, ProviderError
from src.story.persistence import SQLiteStoryStore


# Fixed time for deterministic tests
FIXED_DATETIME = datetime(2026, 1, 1, 0, 0, 0)


class MockClock:
    """
    Mock clock for deterministic time control.

    - Starts at a fixed epoch
    - Advances only when explicitly ticked
    """

    def __init__(self, start_time: datetime = FIXED_DATETIME):
        self._current = start_time

    def now(self) -> datetime:
        return self._current

    def tick(self, seconds: float = 1) -> None:
        """Advance time by specified seconds."""
        self._current += timedelta(seconds=seconds)

    def set(self, time: datetime) -> None:
        """Set time to specific value."""
        self._current = time


class FakeProvider(ModelProvider):
    """
    Scripted model provider.

    Returns queued responses in order; an Exception instance in the queue is
    raised instead of returned. Once the queue is empty every call returns
    `default`.
    """

    def __init__(self, responses: Optional[list] = None, default: str = ""):
        self.responses = list(responses or [])
        self.default = default
        self.calls = []

    @property
    def provider_name(self) -> str:
        return "fake"

    def generate(self, system_prompt, user_prompt, config) -> GenerationResult:
        self.calls.append({"system": system_prompt, "user": user_prompt, "config": config})
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        return GenerationResult(text=response, usage=None, provider="fake", model="fake-model")


@pytest.fixture(autouse=True, scope="function")
def reset_auth_module():
    """
    Reset auth module state before each test.

    This ensures tests run with API_AUTH_ENABLED=false by default,
    unless the test explicitly sets it otherwise.
    """
    # Store original values
    original_auth_enabled = os.environ.get("API_AUTH_ENABLED")
    original_api_key = os.environ.get("API_KEY")

    # Set defaults for tests (auth disabled)
    os.environ["API_AUTH_ENABLED"] = "false"

    yield

    # Restore original values
    if original_auth_enabled is not None:
        os.environ["API_AUTH_ENABLED"] = original_auth_enabled
    elif "API_AUTH_ENABLED" in os.environ:
        del os.environ["API_AUTH_ENABLED"]

    if original_api_key is not None:
        os.environ["API_KEY"] = original_api_key
    elif "API_KEY" in os.environ:
        del os.environ["API_KEY"]

    import importlib
    import src.api.dependencies.auth as auth_module
    importlib.reload(auth_module)


# =============================================================================
# Clock / Store Fixtures
# =============================================================================


@pytest.fixture
def mock_clock() -> MockClock:
    """Create a mock clock at fixed time."""
    return MockClock()


@pytest.fixture
def memory_store(mock_clock: MockClock) -> InMemoryStoryStore:
    """In-memory store driven by the mock clock."""
    return InMemoryStoryStore(clock=mock_clock.now)


@pytest.fixture
def temp_db_path() -> Generator[str, None, None]:
    """Create a temporary database file."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    yield db_path

    # Cleanup, including WAL and SHM files
    Path(db_path).unlink(missing_ok=True)
    Path(f"{db_path}-wal").unlink(missing_ok=True)
    Path(f"{db_path}-shm").unlink(missing_ok=True)


@pytest.fixture
def sqlite_store(temp_db_path: str, mock_clock: MockClock) -> SQLiteStoryStore:
    """Fresh SQLite store driven by the mock clock."""
    return SQLiteStoryStore(temp_db_path, clock=mock_clock.now)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, mock_clock: MockClock, temp_db_path: str):
    """Both store implementations, for contract tests."""
    if request.param == "memory":
        return InMemoryStoryStore(clock=mock_clock.now)
    return SQLiteStoryStore(temp_db_path, clock=mock_clock.now)


# =============================================================================
# Provider Fixtures
# =============================================================================


@pytest.fixture
def fake_provider() -> FakeProvider:
    """Provider with an empty script (every call returns "")."""
    return FakeProvider()


@pytest.fixture
def failing_provider() -> FakeProvider:
    """Provider whose every call raises."""
    return FakeProvider(default=ProviderError("service unavailable"))


@pytest.fixture
def make_provider():
    """Factory for scripted providers: make_provider(["chapter", '{"question": ...}'])."""
    def _make(responses=None, default=""):
        return FakeProvider(responses=responses, default=default)
    return _make
