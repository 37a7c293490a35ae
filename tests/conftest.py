"""
Pytest configuration and fixtures for Status Sweeper tests.
"""

from unittest.mock import AsyncMock

import pytest

from status_sweeper.config import AdmissionConfig, Settings
from status_sweeper.polling.cache import ResultCache
from status_sweeper.polling.rate_limiter import AdmissionController
from status_sweeper.state.manager import InMemoryDocumentStore
from status_sweeper.status_client import StatusClient


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_settings() -> Settings:
    """Settings for testing."""
    return Settings(
        _env_file=None,
        status_api_base_url="https://api.test",
        credentials="key-one,key-two",
        store_backend="memory",
        debug=True,
        log_level="DEBUG",
    )


@pytest.fixture
def admission(clock: FakeClock) -> AdmissionController:
    """Admission controller with a single generous credential."""
    controller = AdmissionController(
        AdmissionConfig(quota_per_credential=100, window_seconds=60),
        clock=clock,
    )
    controller.set_credentials(["key-one"])
    return controller


@pytest.fixture
def cache(clock: FakeClock) -> ResultCache:
    return ResultCache(ttl_seconds=60, clock=clock)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def mock_status_client() -> AsyncMock:
    """Mock status client returning a snapshot per entity."""
    client = AsyncMock(spec=StatusClient)

    async def fetch_status(entity_id: str, credential: str) -> dict:
        return {"current": int(entity_id) * 10, "entity": entity_id}

    client.fetch_status.side_effect = fetch_status
    return client
