"""Operation result types and status enums.

This module contains standardized result types for operations against
external systems, including status enums, the result dataclass, and error
classifiers for identity provider exceptions.
"""

from infrastructure.operations.classifiers import (
    RECOVERABLE_ERROR_PATTERNS,
    classify_http_error,
    classify_sync_error,
    is_recoverable_error,
)
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

__all__ = [
    "OperationResult",
    "OperationStatus",
    "RECOVERABLE_ERROR_PATTERNS",
    "classify_http_error",
    "classify_sync_error",
    "is_recoverable_error",
]
