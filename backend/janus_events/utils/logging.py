"""Structured logging utilities."""

import logging
import sys
from typing import Any, Mapping

import structlog

_REDACTED_HEADERS = {"authorization", "cookie"}


def setup_logging(debug: bool = False) -> None:
    """Configure structured logging for the application."""

    log_level = logging.DEBUG if debug else logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance for the given name."""
    return structlog.get_logger(name)


def mask_headers(headers: Mapping[str, str]) -> dict:
    masked = dict(headers)
    for key in list(masked):
        if key.lower() in _REDACTED_HEADERS:
            masked[key] = "[REDACTED]"
    return masked


def truncate(value: Any, limit: int = 4000) -> Any:
    if not isinstance(value, str):
        return value
    return value if len(value) <= limit else value[:limit] + "...(truncated)"


class WebhookLogger:
    """Logger bound to one inbound webhook request."""

    def __init__(self, remote_addr: str, path: str):
        self.logger = get_logger("janus.webhook")
        self.remote_addr = remote_addr
        self.path = path

    def log(self, event: str, **kwargs: Any) -> None:
        self.logger.info(event, remote_addr=self.remote_addr, path=self.path, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self.logger.warning(event, remote_addr=self.remote_addr, path=self.path, **kwargs)

    def error(self, event: str, **kwargs: Any) -> None:
        self.logger.error(event, remote_addr=self.remote_addr, path=self.path, **kwargs)

    def received(self, headers: Mapping[str, str], body: str) -> None:
        """Log an inbound hook with credentials masked."""
        self.logger.info(
            "hook_received",
            remote_addr=self.remote_addr,
            path=self.path,
            headers=mask_headers(headers),
            body_bytes=len(body),
            body=truncate(body),
        )
