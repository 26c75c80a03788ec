"""Logging configuration for agentloop."""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, TextIO

import structlog

from agentloop.config import get_config


def configure_logging(
    level: str | None = None,
    fmt: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Configure structured logging for agentloop.

    Args:
        level: Log level name; defaults to ``config.logging.level``
        fmt: ``console`` or ``json``; defaults to ``config.logging.format``
        stream: Output stream; defaults to stderr
    """
    config = get_config()

    level_name = (level or config.logging.level or "INFO").upper()
    log_level = getattr(logging, level_name, logging.INFO)
    render_format = (fmt or config.logging.format or "console").lower()

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if render_format == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=config.console.colors))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=_logger_factory(stream),
        cache_logger_on_first_use=False,
    )


def _logger_factory(stream: TextIO | None):
    if stream is not None:
        return structlog.PrintLoggerFactory(file=stream)

    # sys.stderr is looked up when each logger is created
    def factory(*args: object) -> structlog.PrintLogger:
        return structlog.PrintLogger(file=sys.stderr)

    return factory


@contextmanager
def agent_log_context(agent: str, **extra: object) -> Iterator[None]:
    """Bind the agent name (and extra keys) to every log event in the block."""
    with structlog.contextvars.bound_contextvars(agent=agent, **extra):
        yield


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a logger instance.

    Args:
        name: Optional logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()
