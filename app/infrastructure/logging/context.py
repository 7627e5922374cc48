"""Operation context binding for structured logging.

Binds per-execution metadata (correlation id, idempotency key, operation
name) to structlog's contextvars so every log entry emitted while an
operation executes, including those from the store and the ledger, carries it.

Usage:
    from infrastructure.logging import bind_operation_context

    with bind_operation_context(idempotency_key=key, operation="create_listing"):
        result = executor.execute(key, operation)
"""

import uuid
from contextlib import contextmanager
from typing import Any, Generator, Optional

import structlog


@contextmanager
def bind_operation_context(
    correlation_id: Optional[str] = None,
    idempotency_key: Optional[str] = None,
    operation: Optional[str] = None,
    **extra_context: Any,
) -> Generator[str, None, None]:
    """Bind operation-scoped context to all logs within the block.

    Args:
        correlation_id: Unique request identifier. Auto-generated if not provided.
        idempotency_key: Client-supplied idempotency key.
        operation: Name of the business operation.
        **extra_context: Additional key-value pairs to include in logs.

    Yields:
        The correlation id bound for the block.
    """
    context: dict[str, Any] = {"correlation_id": correlation_id or str(uuid.uuid4())}

    if idempotency_key is not None:
        context["idempotency_key"] = idempotency_key

    if operation is not None:
        context["operation"] = operation

    context.update(extra_context)

    structlog.contextvars.bind_contextvars(**context)
    try:
        yield context["correlation_id"]
    finally:
        structlog.contextvars.unbind_contextvars(*context.keys())


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from the logging context."""
    return structlog.contextvars.get_contextvars().get("correlation_id")


def clear_operation_context() -> None:
    """Clear all bound context.

    Lambda-style handlers reuse the interpreter between invocations, so
    handlers call this at the end of every invocation.
    """
    structlog.contextvars.clear_contextvars()
