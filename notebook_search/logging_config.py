"""Structured logging setup shared by the engine and the Qt layer."""

from __future__ import annotations

import logging
import os

import structlog

LOG_LEVEL_ENV = "NOTEBOOK_SEARCH_LOG_LEVEL"


def get_log_level() -> str:
    level = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        return "INFO"
    return level


def configure_logging(level: str | None = None, json_format: bool = False) -> None:
    """Route structlog through stdlib logging.

    Args:
        level: log level name; falls back to the environment, then INFO.
        json_format: render JSON lines instead of the console renderer.
    """
    level_name = str(level or get_log_level()).upper()

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level_name, logging.INFO),
    )
