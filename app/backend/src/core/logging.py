"""Structured logging configuration."""

from __future__ import annotations

import logging

import structlog

from .config import get_settings


def configure_logging() -> None:
    """Configure basic JSON-style logging for the service."""

    level = getattr(logging, get_settings().log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format='{"level": "%(levelname)s", "message": "%(message)s"}')

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # httpx logs every outbound request URL at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
