"""Structured logging configuration using structlog.

Production logs are one JSON object per line for the serverless host's log
collector; everywhere else they are rendered for the console. Every entry
carries the service name, environment and, inside a request, the
correlation id bound by the request logging middleware.
"""

import logging
import sys
from typing import Any, Dict, List, Optional

import structlog
from structlog.types import EventDict, Processor

_service_fields: Dict[str, str] = {"service": "storefront-api", "environment": "development"}

# Chatty third-party loggers, kept at WARNING unless LOG_LEVEL is DEBUG.
_NOISY_LOGGERS = ("pymongo", "uvicorn.access")


def add_service_fields(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp service name and environment without overriding bound values."""
    for key, value in _service_fields.items():
        event_dict.setdefault(key, value)
    return event_dict


def _processors(json_logs: bool) -> List[Processor]:
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        add_service_fields,
    ]
    if json_logs:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    service_name: Optional[str] = None,
    environment: Optional[str] = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Safe to call more than once; the last call wins.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_logs: Render JSON lines instead of console output
        service_name: Value of the ``service`` field
        environment: Value of the ``environment`` field
    """
    if service_name:
        _service_fields["service"] = service_name
    if environment:
        _service_fields["environment"] = environment

    level = getattr(logging, log_level.upper())

    structlog.configure(
        processors=_processors(json_logs),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level == logging.DEBUG else logging.WARNING)


def bind_context(**kwargs: Any) -> None:
    """Bind values to every log entry in the current context (request)."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
