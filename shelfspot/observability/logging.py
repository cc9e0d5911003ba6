"""
Logging setup for shelfspot processes.

Services and repositories log through stdlib ``logging``; the worker and
CLI use structlog loggers. Both end up in the same stdout stream, rendered
as JSON lines when ENVIRONMENT=production and as coloured console output
otherwise. Fields bound with ``log_context`` (sweep number, item id) are
attached to every structlog record emitted inside the block.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from structlog.types import Processor

from shelfspot.config.settings import get_settings

# Client libraries that log every request or pool checkout at INFO/DEBUG.
QUIET_LOGGERS = ("httpx", "httpcore", "asyncpg", "asyncio")


def _renderer(json_output: bool) -> Processor:
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging() -> None:
    """Configure structlog and the root stdlib logger from settings."""
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.is_production:
        processors.append(structlog.processors.format_exc_info)
    processors.append(_renderer(settings.is_production))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def log_context(**fields) -> Iterator[None]:
    """Bind fields to structlog records emitted inside the block."""
    with structlog.contextvars.bound_contextvars(**fields):
        yield
