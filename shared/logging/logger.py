"""
Logger Implementation
=====================

structlog setup for the warranty service.

Every entry carries the service name, an ISO UTC timestamp and whatever the
current request bound (`request_id`, `user_id`). Purchased-account
credentials, bearer tokens and evidence URL signatures are redacted before
rendering, including inside nested payloads such as claim events.

Version: 0.1.0
"""

import logging
import sys
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger


if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger


REDACTED = "***REDACTED***"

# Matched as substrings of lower-cased keys
SENSITIVE_KEYS = frozenset({
    "password",
    "secret",
    "token",
    "authorization",
    "signature",
    "api_key",
    "account_details",
})

NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "asyncio",
    "aiokafka",
    "sqlalchemy.engine",
    "uvicorn.access",
)

_service_name = "canvango-warranty"


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(s in lowered for s in SENSITIVE_KEYS)


def redact(value: Any) -> Any:
    """Copy of `value` with sensitive keys masked at any depth."""
    if isinstance(value, dict):
        return {
            k: REDACTED if isinstance(k, str) and _is_sensitive(k) else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [redact(v) for v in value]
    if type(value) is tuple:
        return tuple(redact(v) for v in value)
    return value


def _redact_processor(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    return redact(event_dict)


def _add_service(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict.setdefault("service", _service_name)
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    service_name: str = "canvango-warranty",
    noisy_loggers: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """
    Configure structlog and route stdlib logging through it.

    Args:
        log_level: Root level name (DEBUG, INFO, ...)
        json_logs: JSON lines when True, colored console otherwise
        service_name: Value of the `service` field on every entry
        noisy_loggers: Third-party loggers capped at WARNING
    """
    global _service_name
    _service_name = service_name

    level = logging.getLevelName(log_level.upper())
    for name in noisy_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_service,
        _redact_processor,
        structlog.processors.StackInfoRenderer(),
    ]

    renderer: Processor
    if json_logs:
        pre_chain.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def get_logger(name: str | None = None) -> "BoundLogger":
    """
    Structured logger for a module.

    Example:
        logger = get_logger(__name__)
        logger.info("claim_submitted", claim_id=claim.id, user_id=user_id)
    """
    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Attach fields to every entry logged from the current request."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
