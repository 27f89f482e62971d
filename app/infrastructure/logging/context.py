"""Request context binding for structured logging.

Binds a correlation id (and optional organization/event metadata) to every
log entry emitted while a trigger request or retry batch is handled.

Usage:
    from infrastructure.logging import bind_request_context

    with bind_request_context(organization_id="org-1", event_type="device.offline"):
        logger.info("notification_trigger_received")

Dependencies:
    - structlog.contextvars
"""

import uuid
from contextlib import contextmanager
from typing import Any, Generator, Optional

import structlog


@contextmanager
def bind_request_context(
    correlation_id: Optional[str] = None,
    organization_id: Optional[str] = None,
    request_path: Optional[str] = None,
    **extra_context: Any,
) -> Generator[str, None, None]:
    """Bind request-scoped context to all logs within the block.

    Args:
        correlation_id: Request identifier. Generated when not provided.
        organization_id: Organization the request acts on.
        request_path: HTTP path, when bound from a route handler.
        **extra_context: Additional key-value pairs to include in logs.

    Yields:
        The correlation id in effect for the block.
    """
    context: dict[str, Any] = {"correlation_id": correlation_id or str(uuid.uuid4())}

    if organization_id is not None:
        context["organization_id"] = organization_id
    if request_path is not None:
        context["request_path"] = request_path

    context.update(extra_context)

    structlog.contextvars.bind_contextvars(**context)
    try:
        yield context["correlation_id"]
    finally:
        structlog.contextvars.unbind_contextvars(*context.keys())


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from the logging context."""
    return structlog.contextvars.get_contextvars().get("correlation_id")
