"""Logging configuration.

Routes structlog through the standard library so third-party loggers
(uvicorn, sqlalchemy) share the same level and output stream.
"""

import logging
import sys
from typing import Any

import structlog


def _static_fields(**fields: Any) -> structlog.types.Processor:
    """Processor adding fixed key/values to every event."""

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        for key, value in fields.items():
            event_dict.setdefault(key, value)
        return event_dict

    return processor


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    hostname: str | None = None,
) -> None:
    """Configure stdlib logging and structlog.

    Args:
        log_level: Root log level name (e.g. "INFO", "DEBUG").
        json_logs: Render JSON lines when True, human-readable console otherwise.
        hostname: Host name added to every log event when given.
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(message)s",
        stream=sys.stderr,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
    ]
    if hostname:
        processors.append(_static_fields(hostname=hostname))
    processors.extend(
        [
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ]
    )

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
