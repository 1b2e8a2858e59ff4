"""Shared test configuration for http_service tests."""

import pytest

from http_service.core.logging import setup_logging


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom settings."""
    # Reuse the application logging pipeline so structlog behaves as in production
    setup_logging(json_logs=False, log_level_name="DEBUG")
