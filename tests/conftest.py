"""Shared test fixtures for pytest."""

import pytest
from fakes import FakeClock

from topswap.config import Settings
from topswap.metrics import metrics
from topswap.models import ComponentSpec


@pytest.fixture(autouse=True)
def reset_metrics():
    """Start every test with an empty metrics registry."""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    """Settings with short drain timings."""
    return Settings(drain_timeout_seconds=30.0, poll_interval_seconds=1.0)


@pytest.fixture
def query_components() -> list[ComponentSpec]:
    return [
        ComponentSpec(kind="admin", server="app01"),
        ComponentSpec(kind="query", server="app01", store="property-db"),
    ]


@pytest.fixture
def ingestion_components() -> list[ComponentSpec]:
    return [ComponentSpec(kind="crawl", server="app01", store="crawl-db")]
