"""Structured logging infrastructure.

This package provides centralized logging configuration and utilities
for the reconciliation service using structlog.

Public API:
    - configure_logging(): Initialize logging for the application
    - get_module_logger(): Get a logger for the calling module
    - bind_operation_context(): Context manager for operation-scoped logging
    - get_correlation_id(): Get current correlation ID from context
    - clear_operation_context(): Clear all bound context

Processors:
    - add_app_info(): Add app name/version
    - mask_sensitive_data(): Redact sensitive fields, including nested payloads
    - truncate_large_values(): Limit string lengths

Example:
    from infrastructure.logging import get_module_logger, bind_operation_context

    logger = get_module_logger()

    with bind_operation_context(operation_id="1700000000000-ab12cd34ef56"):
        logger.info("operation_executing")
"""

from infrastructure.logging.setup import (
    configure_logging,
    get_module_logger,
)

from infrastructure.logging.context import (
    bind_operation_context,
    get_correlation_id,
    clear_operation_context,
)

from infrastructure.logging.formatters import (
    add_app_info,
    mask_sensitive_data,
    truncate_large_values,
    SENSITIVE_PATTERNS,
)

__all__ = [
    # Setup
    "configure_logging",
    "get_module_logger",
    # Context
    "bind_operation_context",
    "get_correlation_id",
    "clear_operation_context",
    # Processors
    "add_app_info",
    "mask_sensitive_data",
    "truncate_large_values",
    "SENSITIVE_PATTERNS",
]
