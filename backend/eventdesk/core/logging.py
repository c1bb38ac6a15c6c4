"""
structlog setup for the API and the engine services.

Events are JSON lines in production and coloured console output elsewhere
(override with LOG_FORMAT). Request id, method and path are bound per request
by RequestLoggingMiddleware through contextvars, so engine code only logs its
own fields.

Registrations carry participants' phone numbers and email addresses. With
LOG_REDACT_CONTACTS on, those fields are masked before rendering.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.typing import EventDict

from eventdesk.core.config import get_settings

CONTACT_FIELDS = frozenset({
    "email",
    "user_email",
    "phone",
    "user_phone",
    "caregiver_phone",
    "recipient",
})

# Quiet unless something is wrong
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "aiosqlite")


def mask_contact(value: Any) -> Any:
    """Keep just enough of an address or number to tell entries apart."""
    if not isinstance(value, str) or not value:
        return value
    if "@" in value:
        local, _, domain = value.partition("@")
        return f"{local[:1]}***@{domain}"
    return f"***{value[-3:]}" if len(value) > 3 else "***"


def redact_contacts(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    for key in CONTACT_FIELDS.intersection(event_dict):
        event_dict[key] = mask_contact(event_dict[key])
    return event_dict


def _renderer(settings) -> structlog.typing.Processor:
    log_format = settings.LOG_FORMAT or ("json" if settings.ENVIRONMENT == "production" else "console")
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging() -> None:
    settings = get_settings()

    processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if settings.LOG_REDACT_CONTACTS:
        processors.append(redact_contacts)

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        # Records from the stdlib loggers (uvicorn, alembic) go through the same chain
        foreign_pre_chain=processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, _renderer(settings)],
    ))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
