from __future__ import annotations

"""
Structured logging setup for the watchtower.

structlog on top of stdlib ``logging``:
- JSON output by default, a coloured console renderer for operators at a tty.
- ISO timestamps, log level and a ``service`` field on every event.
- Well-known secret keys are redacted.

Quick start
-----------
    from watchtower.logging import setup_logging, get_logger

    setup_logging(level="INFO", log_format="console")
    log = get_logger(__name__).bind(task="submit-price")
    log.info("price.checkpoint", checkpoint=1000)

Environment
-----------
- WATCHTOWER_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- WATCHTOWER_LOG_FORMAT: "json" (default) or "console"
"""

import logging
import logging.config
import os
from typing import Any, Dict, Iterable, Optional

import structlog
from structlog.contextvars import merge_contextvars
from structlog.processors import JSONRenderer


REDACT_KEYS = {"password", "secret", "private_key", "mnemonic", "api_key", "authorization"}


def _redact_secrets(_: logging.Logger, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for k in list(event_dict.keys()):
        if k.lower() in REDACT_KEYS and event_dict[k] is not None:
            event_dict[k] = "***"
    return event_dict


def _base_processors(service_name: str) -> Iterable:
    yield structlog.stdlib.add_log_level
    yield structlog.processors.TimeStamper(fmt="iso", utc=True)
    yield merge_contextvars
    yield structlog.processors.StackInfoRenderer()
    yield structlog.processors.format_exc_info
    yield _redact_secrets
    yield structlog.processors.UnicodeDecoder()

    def _ensure_service(_: logging.Logger, __: str, ev: Dict[str, Any]) -> Dict[str, Any]:
        ev.setdefault("service", service_name)
        return ev

    yield _ensure_service


def setup_logging(
    *,
    service_name: str = "watchtower",
    level: Optional[str | int] = None,
    log_format: Optional[str] = None,
) -> None:
    """Configure structlog + stdlib logging. Call once at process start."""
    level = level or os.getenv("WATCHTOWER_LOG_LEVEL", "").upper() or "INFO"
    log_format = (log_format or os.getenv("WATCHTOWER_LOG_FORMAT", "") or "json").lower()
    if isinstance(level, str):
        level = level.upper()

    processors = list(_base_processors(service_name))
    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer(colors=True, sort_keys=False)
    else:
        renderer = JSONRenderer(sort_keys=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processor": renderer,
                    "foreign_pre_chain": processors,
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "structured",
                },
            },
            "root": {"handlers": ["default"], "level": level},
            "loggers": {
                "httpx": {"level": "WARNING"},
                "httpcore": {"level": "WARNING"},
            },
        }
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


__all__ = ["setup_logging", "get_logger"]
