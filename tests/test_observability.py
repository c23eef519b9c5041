"""Tests for structured logging configuration."""

from __future__ import annotations

import logging

import pytest
from structlog.testing import capture_logs

from backend.observability import configure_logging, get_logger


@pytest.fixture
def restore_logging():
    yield
    configure_logging(0)


@pytest.mark.parametrize(
    ("verbosity", "level"),
    [(0, logging.WARNING), (1, logging.INFO), (2, logging.DEBUG), (5, logging.DEBUG)],
)
def test_verbosity_maps_to_root_level(restore_logging, verbosity: int, level: int) -> None:
    configure_logging(verbosity)
    assert logging.getLogger().level == level


def test_noisy_loggers_stay_quiet(restore_logging) -> None:
    configure_logging(2)
    assert logging.getLogger("httpx").level == logging.WARNING


def test_default_verbosity_drops_info(restore_logging) -> None:
    configure_logging(0)
    log = get_logger("storyloom.test")
    with capture_logs() as logs:
        log.info("hidden")
        log.warning("shown", page_id="p1")
    assert logs == [{"event": "shown", "page_id": "p1", "log_level": "warning"}]


def test_verbose_keeps_info(restore_logging) -> None:
    configure_logging(1)
    log = get_logger("storyloom.test")
    with capture_logs() as logs:
        log.info("visible")
        log.debug("still_hidden")
    assert [e["event"] for e in logs] == ["visible"]
