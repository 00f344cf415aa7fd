from __future__ import annotations

import logging
import os
from typing import Any

import structlog

# Third-party loggers that are chatty at INFO (one line per outbound request).
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


def _get_log_level() -> int:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level, logging.INFO)


def _renderer() -> Any:
    log_format = os.getenv("LOG_FORMAT", "json").lower()
    if os.getenv("APP_ENV") == "dev" and "LOG_FORMAT" not in os.environ:
        log_format = "console"
    if log_format == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def setup_logging() -> None:
    """Route structlog and stdlib logging through one JSON (or console) formatter.

    Bound contextvars (request_id, path, method) are merged into every event,
    including events emitted by services while handling a request.
    """

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(),
        ],
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    logging.basicConfig(level=_get_log_level(), handlers=[handler], force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, _get_log_level()))


def get_logger(*args: Any, **kwargs: Any) -> structlog.stdlib.BoundLogger:  # convenience
    return structlog.get_logger(*args, **kwargs)
