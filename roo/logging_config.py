# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Logging configuration for Roo using structlog.

structlog events and plain stdlib records (uvicorn, SQLAlchemy) share one
stdout handler and one renderer: JSON in production, colored console lines
during development.

Assumptions:
- Context (request_id, method, path, actor) is bound per request
- Secrets are redacted in the processor chain, so no event can leak one
- uvicorn's own access log is muted; the request middleware logs requests
"""
import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from roo.config import settings

REDACTED = "[REDACTED]"
SENSITIVE_FIELDS = frozenset({
    "password", "password_hash", "client_secret", "secret", "token", "authorization",
})

# stdlib loggers and the level they are held at
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


def redact(value: Any) -> Any:
    """Return a copy of value with sensitive keys masked at any depth."""
    if isinstance(value, dict):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_FIELDS else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Processor masking sensitive keys anywhere in the event."""
    return redact(event_dict)


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
    ]


def configure_logging(
    log_level: Optional[str] = None,
    json_output: Optional[bool] = None
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON; if False, pretty print

    Assumptions:
    - Safe to call more than once; the last call wins
    """
    level = getattr(logging, (log_level or settings.log_level).upper())
    use_json = json_output if json_output is not None else settings.log_json
    renderer: Processor = (
        structlog.processors.JSONRenderer() if use_json else structlog.dev.ConsoleRenderer()
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_processors(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, quiet_level))

    structlog.configure(
        processors=_shared_processors() + [
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Replace the bound context variables for the current request.

    Args:
        **kwargs: Context variables to bind (request_id, path, etc.)
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**kwargs)


def add_context(**kwargs: Any) -> None:
    """Add context variables without dropping the ones already bound."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


configure_logging()
