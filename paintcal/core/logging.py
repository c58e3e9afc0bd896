"""Logfire setup and structured logging helpers.

Modules log through ``logging.getLogger(__name__)`` with ``extra={...}``;
configure_logfire() routes those records to Logfire. Service functions wrap
their bodies in ``span("<module>.<function>")``.
"""

import logging
from typing import TYPE_CHECKING

import logfire
from fastapi import FastAPI

from paintcal.core.config import settings


if TYPE_CHECKING:
    from paintcal.domain.user import User


def configure_logfire() -> None:
    """Configure Logfire and capture standard library log records."""
    logfire.configure(
        token=settings.logfire_token,
        service_name="paintcal",
        service_version="0.1.0",
        environment=settings.environment,
        send_to_logfire="if-token-present",
    )
    logging.basicConfig(handlers=[logfire.LogfireLoggingHandler()], level=logging.INFO)
    logging.getLogger(__name__).info("Logfire configured", extra={"environment": settings.environment})


def instrument_fastapi(app: FastAPI) -> None:
    logfire.instrument_fastapi(app)
    logging.getLogger(__name__).info("FastAPI instrumentation configured")


def span(name: str, **attributes: object) -> logfire.LogfireSpan:
    """Span around a service operation, e.g. ``span("task_service.append_note", task_id=task_id)``."""
    return logfire.span(name, **attributes)


def actor_context(user: "User | None") -> dict[str, object]:
    """Log fields identifying the acting user."""
    if user is None:
        return {"user_id": None}
    return {"user_id": user.id, "user_type": str(user.user_type), "display_name": user.display_name}


def log_action(
    logger: logging.Logger,
    level: str,
    message: str,
    *,
    actor: "User | None" = None,
    **context: object,
) -> None:
    """Log ``message`` at ``level`` with the actor's fields merged into ``extra``.

    Usage:
        log_action(logger, "info", "Dashboard started", actor=user, slots=["tasks"])
    """
    getattr(logger, level.lower())(message, extra={**actor_context(actor), **context})
