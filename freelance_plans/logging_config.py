"""Structured logging configuration using structlog.

Every log line carries the app name, level and a UTC timestamp. Within a
request it also carries request_id, plus user_id, plan_id and
subscription_id once they are known. Domain values (statuses, prices,
window dates) are rendered as plain JSON scalars.
"""

import logging
import os
import sys
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

import structlog
from structlog.typing import EventDict, Processor

APP_NAME = "freelance-plans"

# Path segment -> context key for the numeric id that follows it
PATH_CONTEXT_KEYS = {
    "plans": "plan_id",
    "subscriptions": "subscription_id",
}

# Third-party loggers that are too chatty at INFO
_NOISY_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["app"] = APP_NAME
    return event_dict


def render_domain_values(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Turn enums, Decimals and datetimes into JSON-friendly scalars.

    SubscriptionStatus logs as its value, a price such as Decimal("19.99")
    as "19.99", and window dates as ISO 8601 strings.
    """
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, Decimal):
            event_dict[key] = str(value)
        elif isinstance(value, (datetime, date)):
            event_dict[key] = value.isoformat()
    return event_dict


def drop_debug_in_production(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Drop DEBUG logs if not in debug mode."""
    if method_name == "debug" and not is_debug_mode():
        raise structlog.DropEvent
    return event_dict


def is_debug_mode() -> bool:
    return os.getenv("LOG_LEVEL", "INFO").upper() == "DEBUG"


def configure_logging(
    log_level: str = "INFO",
    json_format: bool = True,
    include_timestamp: bool = True,
) -> None:
    """Configure structlog for the service.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: If True, output JSON; if False, use colored console output
        include_timestamp: Include UTC ISO 8601 timestamps
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        render_domain_values,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    if numeric_level > logging.DEBUG:
        processors.append(drop_debug_in_production)

    if json_format:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True, exception_formatter=structlog.dev.plain_traceback)
    processors.append(renderer)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables that will be included in all subsequent logs.

    Example:
        bind_context(request_id="abc123", user_id=42)
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def bind_path_context(path: str) -> dict[str, int]:
    """Bind plan_id / subscription_id found in a request path.

    ``/plans/7/subscribers`` binds plan_id=7 and
    ``/admin/subscriptions/12/activate`` binds subscription_id=12.
    Non-numeric segments such as ``/subscriptions/me`` are ignored.

    Returns:
        The bound keys and values
    """
    parts = [part for part in path.split("/") if part]
    bound = {}
    for index, part in enumerate(parts[:-1]):
        key: Optional[str] = PATH_CONTEXT_KEYS.get(part)
        if key is not None and parts[index + 1].isdigit():
            bound[key] = int(parts[index + 1])
    if bound:
        bind_context(**bound)
    return bound


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all context variables."""
    structlog.contextvars.clear_contextvars()
