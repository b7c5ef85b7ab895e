"""Structured logging for the control plane."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import structlog
from pythonjsonlogger import jsonlogger

# Chatty third-party loggers held at WARNING.
QUIET_LOGGERS = ("uvicorn.access", "httpx", "asyncio")


def _renderer(format_type: str) -> Any:
    if format_type == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def _handler_formatter(format_type: str) -> logging.Formatter:
    if format_type == "json":
        return jsonlogger.JsonFormatter("%(asctime)s %(name)s %(levelname)s %(message)s")
    return logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")


def setup_logging(
    level: str = "INFO",
    format_type: str = "json",
    file_path: Path | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    ``format_type`` is ``json`` for one JSON object per line, anything else
    for plain text. Calling it again replaces the previous handlers.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _renderer(format_type),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = _handler_formatter(format_type)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if file_path:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(file_path))
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=getattr(logging, level.upper()), handlers=handlers, force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, **context: Any) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, optionally pre-bound with ``context``."""
    logger = structlog.get_logger(name)
    return logger.bind(**context) if context else logger
