"""Structured logging configuration using structlog.

Core and service modules log key-value events through ``get_logger``.
Provider clients log through the standard library; both end up on stdout.
Production renders JSON, development renders colored console lines.

Acquisition workers bind the scene they are working on with
``scene_context`` so every event of that scene carries its ``scene_id``.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from clipbinder.core.config import get_config

# Libraries that log one line per HTTP request
NOISY_LOGGERS = ("httpx", "httpcore", "PIL")


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add application name and environment to log events."""
    config = get_config()
    event_dict["app"] = config.app_name
    event_dict["env"] = config.app_env
    return event_dict


def setup_logging(level: str | None = None) -> None:
    """Configure structured logging.

    Args:
        level: Log level name overriding ``Config.log_level`` (e.g. "DEBUG")

    Example:
        >>> setup_logging("DEBUG")
        >>> get_logger(__name__).info("Run started", scenes=12, queued=4)
    """
    config = get_config()
    log_level = getattr(logging, (level or config.log_level).upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
    ]

    if config.debug:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            )
        )

    if config.is_production:
        processors.extend(
            [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
        )
    else:
        processors.extend(
            [
                structlog.processors.format_exc_info,
                structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
            ]
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Scene acquired", scene_id="s-001", provider="pexels")
    """
    return structlog.get_logger(name)


@contextmanager
def scene_context(scene_id: str, **extra: Any) -> Iterator[None]:
    """Bind ``scene_id`` (and ``extra``) to every structlog event in the block.

    The binding lives in a context variable, so concurrent workers each see
    their own scene.
    """
    with structlog.contextvars.bound_contextvars(scene_id=scene_id, **extra):
        yield
