"""Structured logging configuration for Storyloom.

Console output goes through a Rich handler on stderr; verbosity maps to the
level (0=WARNING, 1=INFO, 2+=DEBUG).  Engine components receive a logger from
:func:`get_logger` (or an injected one) and emit structural diagnostics such
as ``orphan_page`` or ``back_edge`` as structured events.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger, Processor

# Module-level state
_configured = False

_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "uvicorn.access")


def configure_logging(verbosity: int = 0) -> None:
    """Configure stdlib logging and structlog.

    Args:
        verbosity: 0=WARNING (default), 1=INFO, 2+=DEBUG.
    """
    global _configured

    levels = {0: logging.WARNING, 1: logging.INFO}
    level = levels.get(verbosity, logging.DEBUG)

    console_handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        markup=False,
        level=level,
    )

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[console_handler],
        force=True,
    )

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    # Loggers are not cached so that reconfiguration (and capture_logs in the
    # test suite) takes effect on already-created module loggers.
    structlog.configure(
        processors=[
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )

    _configured = True


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    """Get a structured logger instance.

    Automatically configures logging if not already done.
    """
    if not _configured:
        from backend.config import settings

        configure_logging(settings.log_verbosity)

    logger: FilteringBoundLogger = structlog.get_logger(name)
    return logger
