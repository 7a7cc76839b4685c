"""Global test configuration for the voice gateway."""

import pytest

from voice_gateway.common.structured_logging import configure_logging


@pytest.fixture(scope="session", autouse=True)
def setup_test_logging() -> None:
    """Configure structured logging once, before any logger is first used."""
    configure_logging(level="INFO", json_logs=True, service_name="gateway")
