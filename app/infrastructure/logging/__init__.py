"""Structured logging infrastructure.

Centralized logging configuration built on structlog.

Public API:
    - configure_logging(): Initialize logging for the application
    - get_logger(): Get a logger instance with a specific name
    - get_module_logger(): Get a logger for the calling module
    - bind_operation_context(): Context manager for execution-scoped logging
    - get_correlation_id(): Get current correlation ID from context
    - clear_operation_context(): Clear all bound context

Example:
    from infrastructure.logging import configure_logging, get_module_logger

    configure_logging()

    logger = get_module_logger()
    logger.info("module_initialized")
"""

from infrastructure.logging.setup import (
    configure_logging,
    get_logger,
    get_module_logger,
)
from infrastructure.logging.context import (
    bind_operation_context,
    clear_operation_context,
    get_correlation_id,
)
from infrastructure.logging.formatters import (
    SENSITIVE_PATTERNS,
    TRACEABLE_KEYS,
    add_app_info,
    mask_sensitive_data,
    truncate_large_values,
)

__all__ = [
    # Setup
    "configure_logging",
    "get_logger",
    "get_module_logger",
    # Context
    "bind_operation_context",
    "get_correlation_id",
    "clear_operation_context",
    # Formatters
    "add_app_info",
    "mask_sensitive_data",
    "truncate_large_values",
    "SENSITIVE_PATTERNS",
    "TRACEABLE_KEYS",
]
