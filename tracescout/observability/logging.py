"""
structlog setup for tracescout.

Pipeline and CLI code log through structlog with keyword fields; the
library modules use plain stdlib loggers. Both are written to stderr so the
CLI can keep stdout for progress lines and JSON results.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from tracescout.config.settings import get_settings

# The SDK and its transport log every request at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "asyncio")


def _renderer(json_logs: bool) -> list[Processor]:
    if json_logs:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def setup_logging(level: str | None = None) -> None:
    """
    Configure structlog and the root stdlib logger for a tracescout process.

    Args:
        level: Overrides LOG_LEVEL, e.g. "DEBUG" from ``tracescout --debug``.
    """
    settings = get_settings()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.UnicodeDecoder(),
            *_renderer(settings.json_logs),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level or settings.log_level),
        force=True,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs) -> None:
    """Attach fields such as ``run_id`` to every later log line in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
