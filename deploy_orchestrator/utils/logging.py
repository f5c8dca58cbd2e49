"""Logging configuration using structlog.

Every log line passes through ``redact_secrets`` before rendering, so a
provider token that slips into an event (an exception message, a request
header) is written as ``[TOKEN]``.
"""

import logging
import re
import sys
from pathlib import Path
from typing import Any

import structlog

from deploy_orchestrator.config import settings

REDACTED = "[TOKEN]"

# Vercel personal and integration tokens
TOKEN_PATTERN = re.compile(r"ver_[A-Za-z0-9_]+")

SECRET_KEYS = frozenset({"token", "provider_token", "vercel_token", "authorization"})


def redact(message: str, token: str | None = None) -> str:
    """Strip credentials from a message."""
    if token:
        message = message.replace(token, REDACTED)
    return TOKEN_PATTERN.sub(REDACTED, message)


def redact_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor hiding secret-looking keys and token-shaped values."""
    for key, value in event_dict.items():
        if key.lower() in SECRET_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, str):
            event_dict[key] = redact(value)
    return event_dict


def _handlers() -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if not settings.log_directory:
        return handlers

    log_dir = Path(settings.log_directory)
    if not log_dir.is_absolute():
        log_dir = Path(__file__).resolve().parents[2] / log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    handlers.append(logging.FileHandler(log_dir / settings.log_file_name, encoding="utf-8"))
    return handlers


def configure_logging() -> None:
    """Configure structured logging for the application."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, settings.log_level),
        handlers=_handlers(),
        force=True,
    )
    # httpx logs every request URL at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        redact_secrets,
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=settings.is_development))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
