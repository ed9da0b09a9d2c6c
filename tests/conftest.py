"""Pytest configuration and fixtures."""

import os

# Keep tests independent of the developer's environment
os.environ.setdefault("ENVIRONMENT", "test")
for _name in ("GEMINI_API_KEY", "FAL_KEY", "BLOB_READ_WRITE_TOKEN", "DATABASE_URL"):
    os.environ.pop(_name, None)

import pytest

from creative_ai_system.config import Settings
from creative_ai_system.finops import DEFAULT_PRICING_TABLE, InMemoryUsageStore, UsageLedger
from creative_ai_system.orchestrator import AsyncJobPoller, ProviderFallbackOrchestrator, RetryPolicy
from creative_ai_system.services import CreativeGenerationService
from creative_ai_system.storage import InMemoryBlobStore, MediaPersistence

from tests.fakes import FakeClock, FakePrimary, FakeSecondary, FakeSleep


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_sleep(clock):
    return FakeSleep(clock)


@pytest.fixture
def retry_policy(fake_sleep):
    return RetryPolicy(max_attempts=3, base_delay_ms=1000, sleep=fake_sleep)


@pytest.fixture
def poller(fake_sleep, clock):
    return AsyncJobPoller(poll_interval_ms=10_000, deadline_ms=60_000, sleep=fake_sleep, clock=clock)


@pytest.fixture
def primary():
    return FakePrimary()


@pytest.fixture
def secondary():
    return FakeSecondary()


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def persistence(blob_store):
    return MediaPersistence(blob_store, clock=lambda: 1_700_000_000.0, token_factory=lambda: "abcd1234")


@pytest.fixture
def usage_store():
    return InMemoryUsageStore()


@pytest.fixture
def ledger(usage_store):
    return UsageLedger(usage_store, DEFAULT_PRICING_TABLE)


@pytest.fixture
def orchestrator(primary, secondary, retry_policy, poller, persistence):
    return ProviderFallbackOrchestrator(
        primary,
        secondary,
        retry_policy=retry_policy,
        poller=poller,
        reference_uploader=persistence,
    )


@pytest.fixture
def service(orchestrator, persistence, ledger):
    return CreativeGenerationService(orchestrator, persistence, ledger)


@pytest.fixture
def test_settings():
    return Settings(_env_file=None, ENVIRONMENT="test")
