"""Structured logging with session correlation.

Every event goes through one structlog processor chain. Editing sessions
bind a ``session_id`` through :class:`LoggingContext`, and events emitted
outside any session still carry a generated ``correlation_id`` so related
lines from a single client call can be grouped.

Production renders one JSON object per line; development renders to the
console.
"""

import logging
import sys
import uuid
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from rulebuilder.core.config import Settings, get_settings

DEFAULT_LOGGER_NAME = "rulebuilder"
CORRELATION_PREFIX = "cid_"


def add_correlation_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp a fresh correlation id unless one is already bound."""
    event_dict.setdefault("correlation_id", f"{CORRELATION_PREFIX}{uuid.uuid4().hex[:12]}")
    return event_dict


def add_logger_name(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["logger"] = getattr(logger, "name", DEFAULT_LOGGER_NAME)
    return event_dict


def rename_message_field(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Expose structlog's ``event`` key as ``message``."""
    if "event" in event_dict:
        event_dict["message"] = event_dict.pop("event")
    return event_dict


def _renderer(settings: Settings) -> tuple[Processor, bool]:
    """Pick the final renderer and whether loggers may be cached."""
    if settings.is_development or settings.log_format == "console":
        return (
            structlog.dev.ConsoleRenderer(colors=True, exception_formatter=structlog.dev.plain_traceback),
            False,
        )
    return structlog.processors.JSONRenderer(), True


def configure_logging(settings: Settings | None = None) -> None:
    """Install the processor chain and route httpx through the same level.

    Args:
        settings: Settings to read ``log_level`` and ``log_format`` from.
            Defaults to the process-wide settings.
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level)
    renderer, cache_logger = _renderer(settings)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        add_correlation_id,
        rename_message_field,
        renderer,
    ]
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=cache_logger,
    )

    # httpx logs through the standard library
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger("httpx").setLevel(level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name or DEFAULT_LOGGER_NAME)


class LoggingContext:
    """Bind context variables for the duration of a ``with`` block.

    Example:
        with LoggingContext(session_id="es_abc123"):
            logger.info("Reference applied")  # carries session_id
    """

    def __init__(self, **kwargs: str) -> None:
        self.context = kwargs
        self._bound = False

    def __enter__(self) -> "LoggingContext":
        structlog.contextvars.bind_contextvars(**self.context)
        self._bound = True
        return self

    def __exit__(self, *args: Any) -> None:
        if self._bound:
            structlog.contextvars.unbind_contextvars(*self.context)
            self._bound = False


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
