"""
Structured logging configuration using structlog.
Outputs JSON in production, pretty-printed in development.

Every event carries the service name and environment, plus whatever the
request has bound: request id, method and path from the middleware, the
acting VID and staff flag from authentication. Bearer credentials and the
cleanup token are masked before rendering.
"""

import logging
import re
import sys
from typing import Any, Optional

import structlog
from app.core.config import get_settings

_HANDLER_NAME = "structlog"

REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset(
    {"authorization", "credential", "token", "cleanup_token", "x_cleanup_token", "staff_token"}
)
_BEARER_RE = re.compile(r"(Bearer\s+)[^\s,;\"']+", re.IGNORECASE)


def redact_credentials(logger, method_name: str, event_dict: dict) -> dict:
    """Mask credential-bearing keys and inline `Bearer ...` values."""
    for key, value in list(event_dict.items()):
        if key.lower() in SENSITIVE_KEYS and value is not None:
            event_dict[key] = REDACTED
        elif isinstance(value, str) and "earer" in value:
            event_dict[key] = _BEARER_RE.sub(rf"\g<1>{REDACTED}", value)
    return event_dict


def _service_context(app_name: str, environment: str):
    def add_service_context(logger, method_name: str, event_dict: dict) -> dict:
        event_dict.setdefault("service", app_name)
        event_dict.setdefault("environment", environment)
        return event_dict

    return add_service_context


def bind_request(request_id: str, method: str, path: str) -> None:
    """Start a fresh log context for one HTTP request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, method=method, path=path)


def bind_actor(user_id: str, is_staff: Optional[bool] = None) -> None:
    """Attach the authenticated VID (and staff flag once known) to the request context."""
    values: dict[str, Any] = {"user_id": user_id}
    if is_staff is not None:
        values["is_staff"] = is_staff
    structlog.contextvars.bind_contextvars(**values)


def setup_logging() -> None:
    settings = get_settings()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        _service_context(settings.APP_NAME, settings.ENVIRONMENT),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        redact_credentials,
    ]

    if settings.ENVIRONMENT == "production":
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # uvicorn, apscheduler and alembic go through the same chain
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for name in ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "apscheduler"):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
