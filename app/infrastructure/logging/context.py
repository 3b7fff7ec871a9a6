"""Operation context binding for structured logging.

This module binds operation-scoped context to logs so every entry emitted
while a sync operation executes carries its operation id, user id and type.
Context is stored in structlog contextvars, which asyncio copies into each
task, so concurrently executing operations never see each other's context.

Usage:
    from infrastructure.logging import bind_operation_context

    with bind_operation_context(
        operation_id=operation.id,
        user_id=operation.user_id,
        operation_type=operation.type.value,
    ):
        logger.info("operation_executing")

Dependencies:
    - structlog.contextvars
"""

import uuid
from contextlib import contextmanager
from typing import Optional, Any, Generator
import structlog


@contextmanager
def bind_operation_context(
    operation_id: Optional[str] = None,
    user_id: Optional[str] = None,
    operation_type: Optional[str] = None,
    correlation_id: Optional[str] = None,
    **extra_context: Any,
) -> Generator[None, None, None]:
    """Bind operation-scoped context to all logs within the context manager.

    Args:
        operation_id: Sync operation identifier.
        user_id: Subject user of the operation.
        operation_type: CREATE, UPDATE or DELETE.
        correlation_id: Unique identifier for the execution. Auto-generated
            if not provided.
        **extra_context: Additional key-value pairs to include in logs.

    Yields:
        None - context is bound to structlog's context vars.
    """
    context: dict[str, Any] = {}

    context["correlation_id"] = correlation_id or str(uuid.uuid4())

    if operation_id is not None:
        context["operation_id"] = operation_id

    if user_id is not None:
        context["user_id"] = user_id

    if operation_type is not None:
        context["operation_type"] = operation_type

    context.update(extra_context)

    structlog.contextvars.bind_contextvars(**context)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*context.keys())


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from the logging context.

    Returns:
        The correlation ID if set, None otherwise.
    """
    ctx = structlog.contextvars.get_contextvars()
    return ctx.get("correlation_id")


def clear_operation_context() -> None:
    """Clear all operation-scoped context from the logging context."""
    structlog.contextvars.clear_contextvars()
