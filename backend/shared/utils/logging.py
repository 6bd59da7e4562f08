"""
Structured logging for the Acta Verification services.

Every entry carries the service name and instance id; request handling adds
the request id, and verification routes add the championship and match they
act on, so one approval can be followed from the HTTP request down to the
gateway call.
"""
from __future__ import annotations

import logging
import sys
from typing import Any, Optional

import structlog
from shared.config import Environment, Settings, get_settings

QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore")
REQUEST_KEYS = ("request_id", "method", "path", "championship_id", "match_id")


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(settings: Settings) -> structlog.types.Processor:
    if settings.environment == Environment.DEV:
        return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    return structlog.processors.JSONRenderer()


def setup_logging(service_name: str, extra_context: dict[str, Any] | None = None) -> None:
    """
    Route structlog and stdlib logging through one stdout handler.

    Args:
        service_name: Bound as ``service`` on every entry (api, workflow).
        extra_context: Additional static fields bound to every entry.
    """
    settings = get_settings()
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, _renderer(settings)],
            foreign_pre_chain=pre_chain,
        )
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        service=service_name,
        instance_id=settings.instance_id,
        **(extra_context or {}),
    )


def bind_request_context(request_id: str, method: str, path: str) -> None:
    """Start a request scope; drops whatever the previous request bound."""
    structlog.contextvars.unbind_contextvars(*REQUEST_KEYS)
    structlog.contextvars.bind_contextvars(request_id=request_id, method=method, path=path)


def bind_verification_context(championship_id: Optional[str] = None, match_id: Optional[str] = None) -> None:
    """Tag the rest of the request's entries with the acta being worked on."""
    fields = {"championship_id": championship_id, "match_id": match_id}
    structlog.contextvars.bind_contextvars(**{k: v for k, v in fields.items() if v})


def clear_request_context() -> None:
    structlog.contextvars.unbind_contextvars(*REQUEST_KEYS)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name)
