"""Structlog configuration for the reconciliation service.

Logging is configured once, on import. Every event carries the operation
context bound by the worker (operation_id, user_id, operation_type), and
sensitive payload keys are redacted before rendering.

Usage:
    from infrastructure.logging import get_module_logger

    logger = get_module_logger()
    logger.info("operation_enqueued", operation_id=operation_id)
"""

import inspect
import logging
import sys
from typing import Any, List, Optional

import structlog
from structlog.stdlib import BoundLogger

from infrastructure.configuration import settings
from infrastructure.logging.formatters import (
    add_app_info,
    mask_sensitive_data,
    truncate_large_values,
)

APP_NAME = "reconciliation-service"

# Above CRITICAL: nothing reaches the handlers.
_SILENT = logging.CRITICAL + 1


def _is_test_environment() -> bool:
    return "pytest" in sys.modules


def _processors(prod_mode: bool) -> List[Any]:
    renderer = (
        structlog.processors.JSONRenderer()
        if prod_mode
        else structlog.dev.ConsoleRenderer()
    )
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
                structlog.processors.CallsiteParameter.FUNC_NAME,
            ]
        ),
        add_app_info(APP_NAME, settings.GIT_SHA),
        mask_sensitive_data(),
        truncate_large_values(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]


def configure_logging(
    log_level: Optional[str] = None,
    is_production: Optional[bool] = None,
) -> BoundLogger:
    """Configure structlog on top of the standard library logger.

    JSON in production, console rendering otherwise. Under pytest the
    processors are kept minimal and the root level is raised so nothing is
    emitted.

    Args:
        log_level: Overrides settings.LOG_LEVEL
        is_production: Overrides settings.is_production

    Returns:
        Configured logger instance
    """
    if _is_test_environment():
        processors = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ]
        level = _SILENT
    else:
        prod_mode = (
            is_production if is_production is not None else settings.is_production
        )
        processors = _processors(prod_mode)
        level_name = (log_level or settings.LOG_LEVEL).upper()
        level = getattr(logging, level_name, logging.INFO)

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", level=level, force=True)
    logging.root.setLevel(level)

    return structlog.stdlib.get_logger()


logger: BoundLogger = configure_logging()


def get_module_logger() -> BoundLogger:
    """Logger bound to the calling module.

    Binds ``module_path`` (e.g. ``modules.reconciliation.queue``) and
    ``component`` (its last segment, e.g. ``queue``).
    """
    frame = inspect.currentframe()
    caller = frame.f_back if frame is not None else None
    module_path = (
        caller.f_globals.get("__name__", "unknown") if caller is not None else "unknown"
    )
    return logger.bind(component=module_path.rsplit(".", 1)[-1], module_path=module_path)
