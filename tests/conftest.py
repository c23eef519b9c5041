"""Shared pytest configuration."""

from __future__ import annotations

import pytest

from backend.observability import configure_logging


@pytest.fixture(autouse=True, scope="session")
def _configure_logging() -> None:
    """Configure structlog once so capture_logs() sees warning-level events."""
    configure_logging(0)
