"""
Pytest configuration and shared fixtures for the test suite.
"""

import pytest

from batchclient.cli import setup_logging
from batchclient.config import ClientConfig, set_config

from helpers import FakeTransport


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Route structured logs through stdlib logging on stderr."""
    setup_logging("DEBUG")


@pytest.fixture
def test_config() -> ClientConfig:
    """Create a test configuration."""
    return ClientConfig(
        _env_file=None,
        batch_size=2,
        select_timeout=0.01,
        timeout=5.0,
        log_level="DEBUG",
    )


@pytest.fixture(autouse=True)
def reset_global_config():
    """Keep the global configuration from leaking between tests."""
    set_config(None)
    yield
    set_config(None)


# ============================================================================
# Fake Transport
# ============================================================================

@pytest.fixture
def fake_transport() -> FakeTransport:
    """Create a fake transport."""
    return FakeTransport()

