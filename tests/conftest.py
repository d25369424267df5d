"""
Shared pytest fixtures and configuration for all tests.
"""
import os
from typing import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

# Hypothesis configuration for property-based testing
from hypothesis import settings as hypothesis_settings, Verbosity, Phase

from config.settings import Settings
from fakes import InMemoryRecordStore

# Default profile: balanced for local development
hypothesis_settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,  # Disable deadline for async tests
    print_blob=True,
)

# CI profile: more thorough testing for continuous integration
hypothesis_settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,  # Reproducible results in CI
)

# Debug profile: minimal examples for quick debugging
hypothesis_settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],  # Skip shrinking for speed
)

# Load profile from environment variable HYPOTHESIS_PROFILE, default to "default"
hypothesis_settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


@pytest.fixture
def test_settings() -> Settings:
    """Development settings with rate limiting off and no .env files."""
    return Settings(
        _env_file=None,
        environment="development",
        elastic_endpoint="http://localhost:9200",
        rate_limit_enabled=False,
        log_level="INFO",
    )


@pytest.fixture
def memory_store() -> InMemoryRecordStore:
    """Empty in-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def app(test_settings, memory_store):
    """Application wired to the in-memory store."""
    from main import create_app
    return create_app(settings=test_settings, record_store=memory_store)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Test client running the application lifespan."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def mock_elasticsearch() -> MagicMock:
    """Mock synchronous Elasticsearch client for store unit tests."""
    mock = MagicMock()
    mock.index.return_value = {"result": "created"}
    mock.search.return_value = {
        "aggregations": {"distinct_values": {"buckets": []}}
    }
    mock.ping.return_value = True
    mock.indices.exists.return_value = False
    return mock


@pytest.fixture
def sample_location_submission() -> dict:
    """Valid POST /api/data payload."""
    return {
        "deployment": "d1",
        "platform": "p1",
        "latitude": 10.0,
        "longitude": 20.0,
        "timestamp": "2024-01-01T00:00:00Z",
    }


@pytest.fixture
def sample_error_response() -> dict:
    """Sample error response structure for testing."""
    return {
        "error_code": "MALFORMED_INPUT",
        "message": "Invalid location submission",
        "details": {"validation_errors": []},
        "request_id": "req_test123",
    }
