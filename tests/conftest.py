"""Pytest configuration and fixtures."""

import os

import pytest

from app.core.config import DEFAULT_SPEC_ROOT, Settings, get_settings
from app.core.spec_loader import SpecificationLoader, get_spec_loader


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["COMPLIANCE_ENV"] = "test"
    os.environ["LLM_PROVIDER"] = "anthropic"
    os.environ["ANTHROPIC_API_KEY"] = "test-anthropic-key"
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def fresh_spec_cache():
    """Start every test with an empty process-wide specification cache."""
    get_spec_loader().cache.clear()
    yield
    get_spec_loader().cache.clear()


@pytest.fixture
def spec_loader() -> SpecificationLoader:
    """Loader over the bundled specification store with its own cache."""
    return SpecificationLoader(DEFAULT_SPEC_ROOT)


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with no backoff and short timeouts."""
    return Settings(
        COMPLIANCE_ENV="test",
        LLM_PROVIDER="anthropic",
        SECTION_INITIAL_BACKOFF_SECONDS=0.0,
        SECTION_TIMEOUT_SECONDS=0.5,
        BATCH_TIMEOUT_SECONDS=0.5,
    )
