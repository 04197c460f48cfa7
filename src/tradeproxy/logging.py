"""Structured logging configuration using structlog with async context propagation."""

import logging
import os
from collections.abc import MutableMapping
from typing import Any

import structlog

#: Event keys whose values must never reach a log sink in clear text.
SENSITIVE_KEYS = frozenset(
    {
        "api_key",
        "api_secret",
        "api_passphrase",
        "passphrase",
        "passphrase_digest",
        "signature",
        "secret",
        "KC-API-KEY",
        "KC-API-SIGN",
        "KC-API-PASSPHRASE",
    }
)

_MASK = "***"


def _mask(value: Any) -> Any:
    if isinstance(value, MutableMapping):
        return {
            k: (_MASK if k in SENSITIVE_KEYS else _mask(v)) for k, v in value.items()
        }
    return value


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask credential material in the event dict, including nested header dicts."""
    for key in list(event_dict.keys()):
        if key in SENSITIVE_KEYS:
            event_dict[key] = _MASK
        else:
            event_dict[key] = _mask(event_dict[key])
    return event_dict


def setup_logging(log_level: str = "INFO") -> None:
    """Configure structlog with JSON or console rendering.

    Uses structlog.contextvars for async context propagation (NOT threadlocal).
    Rendering format is controlled by the LOG_FORMAT environment variable:
    - "json" for production (machine-readable)
    - "console" for development (human-readable, default)
    """
    log_format = os.environ.get("LOG_FORMAT", "console").lower()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)
