"""Logging configuration for the storefront processes (API and job runner).

Every module logs through ``structlog.get_logger(__name__)`` with keyword
fields. ``configure_logging`` routes structlog through the stdlib root
logger so protean's and httpx's records share handlers and format.

Environment:
    LOG_LEVEL   overrides the per-environment default level
    LOG_DIR     also write rotating ``<service>.log`` / ``<service>_error.log``
    PROTEAN_ENV production and staging render JSON lines
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

_LEVELS_BY_ENV = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

_QUIET_LOGGERS = ("protean", "httpx", "httpcore", "asyncio", "sqlalchemy.engine")

_MAX_BYTES = 10 * 1024 * 1024


def current_environment() -> str:
    return (os.getenv("PROTEAN_ENV") or os.getenv("ENVIRONMENT") or "development").lower()


def log_level() -> str:
    return os.getenv("LOG_LEVEL", _LEVELS_BY_ENV.get(current_environment(), "INFO")).upper()


def _rotating(path: Path, level) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=_MAX_BYTES, backupCount=5, encoding="utf-8")
    handler.setLevel(level)
    return handler


def _stdlib_handlers(service: str, level: str) -> list[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    handlers = [console]

    log_dir = os.getenv("LOG_DIR")
    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        handlers.append(_rotating(directory / f"{service}.log", level))
        handlers.append(_rotating(directory / f"{service}_error.log", logging.ERROR))
    return handlers


def _renderer():
    if current_environment() in ("production", "staging"):
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(service: str = "storefront") -> None:
    """Configure stdlib handlers and structlog for one process."""
    level = log_level()

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = _stdlib_handlers(service, level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=service)


def add_context(**kwargs: Any) -> None:
    """Bind fields (request id, job name) to every record logged from this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context(*keys: str) -> None:
    """Drop the given bound fields, or all of them."""
    if keys:
        structlog.contextvars.unbind_contextvars(*keys)
    else:
        structlog.contextvars.clear_contextvars()
