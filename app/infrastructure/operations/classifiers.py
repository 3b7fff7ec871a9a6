"""Error classifiers for identity provider failures.

Converts exceptions raised while talking to the identity provider into
standardized OperationResult objects. The reconciliation worker uses the
classification to decide between scheduling a retry and dead-lettering the
operation.

Key Functions:
- classify_http_error(): httpx status/transport errors -> OperationResult
- classify_sync_error(): any exception -> OperationResult
- is_recoverable_error(): shortcut returning only the retry decision

Usage:
    from infrastructure.operations.classifiers import classify_sync_error

    try:
        await adapter.update_user(user_id, payload)
    except Exception as exc:
        result = classify_sync_error(exc)
        if result.is_recoverable:
            ...
"""

import asyncio
import re
import socket
from typing import Optional

import httpx

from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

# Message fragments identifying transient failures. Matched case-insensitively
# against str(exc) for errors that carry no structured type information.
RECOVERABLE_ERROR_PATTERNS: tuple[tuple[str, str], ...] = (
    ("NETWORK_ERROR", r"network\s*error"),
    ("TIMEOUT", r"timeout|timed\s*out|etimedout"),
    ("RATE_LIMITED", r"rate\s*limit|too\s+many\s+requests"),
    ("SERVICE_UNAVAILABLE", r"service\s+unavailable|\b503\b"),
    ("CONNECTION_REFUSED", r"econnrefused|connection\s+refused"),
    ("CONNECTION_RESET", r"econnreset|connection\s+reset"),
    (
        "DNS_FAILURE",
        r"enotfound|eai_again|name\s+resolution|name\s+or\s+service\s+not\s+known|\bdns\b",
    ),
)

_COMPILED_PATTERNS = tuple(
    (code, re.compile(pattern, re.IGNORECASE))
    for code, pattern in RECOVERABLE_ERROR_PATTERNS
)

_TRANSIENT_EXCEPTION_TYPES: tuple[type[BaseException], ...] = (
    TimeoutError,
    asyncio.TimeoutError,
    ConnectionError,
    socket.gaierror,
)


def _retry_after_seconds(response: httpx.Response) -> Optional[int]:
    header_value = response.headers.get("retry-after")
    if not header_value:
        return None
    try:
        return int(header_value)
    except (ValueError, TypeError):
        return None


def classify_http_error(exc: Exception) -> OperationResult:
    """Classify httpx errors raised by an identity provider client.

    Status Code Mapping:
    - 408: Request timeout -> TRANSIENT_ERROR
    - 429: Rate limiting -> TRANSIENT_ERROR with retry_after
    - 401/403: Auth failures -> UNAUTHORIZED
    - 404: Not found -> NOT_FOUND
    - 5xx: Server error -> TRANSIENT_ERROR
    - Other 4xx: Client error -> PERMANENT_ERROR
    - TransportError (connect, read, DNS): TRANSIENT_ERROR

    Args:
        exc: Exception raised by an httpx-based client

    Returns:
        OperationResult with the classification, or a PERMANENT_ERROR result
        for exceptions that are not httpx errors.
    """
    if isinstance(exc, httpx.TransportError):
        return OperationResult.transient_error(
            f"Identity provider connection error: {type(exc).__name__}: {exc}",
            error_code="CONNECTION_ERROR",
        )

    if not isinstance(exc, httpx.HTTPStatusError):
        return OperationResult.permanent_error(
            f"Identity provider error: {exc}",
            error_code="UNKNOWN_ERROR",
        )

    status_code = exc.response.status_code

    if status_code == 429:
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            "Identity provider rate limited",
            error_code="RATE_LIMITED",
            retry_after=_retry_after_seconds(exc.response) or 60,
        )

    if status_code == 408:
        return OperationResult.transient_error(
            "Identity provider request timeout",
            error_code="TIMEOUT",
        )

    if status_code in (401, 403):
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            f"Identity provider rejected credentials ({status_code})",
            error_code="UNAUTHORIZED" if status_code == 401 else "FORBIDDEN",
        )

    if status_code == 404:
        return OperationResult.error(
            OperationStatus.NOT_FOUND,
            "Identity provider resource not found",
            error_code="NOT_FOUND",
        )

    if 500 <= status_code < 600:
        return OperationResult.transient_error(
            f"Identity provider server error ({status_code})",
            error_code="SERVICE_UNAVAILABLE" if status_code == 503 else "SERVER_ERROR",
        )

    return OperationResult.permanent_error(
        f"Identity provider client error ({status_code}): {exc}",
        error_code="HTTP_ERROR",
    )


def classify_sync_error(exc: BaseException) -> OperationResult:
    """Classify any exception raised while executing a sync operation.

    Structured errors (httpx, built-in network and timeout errors) are
    classified by type. Everything else falls back to matching the message
    against RECOVERABLE_ERROR_PATTERNS; unmatched errors are permanent.

    Args:
        exc: Exception raised by the identity provider adapter

    Returns:
        OperationResult with TRANSIENT_ERROR for recoverable failures and a
        non-retryable status otherwise
    """
    if isinstance(exc, httpx.HTTPError):
        return classify_http_error(exc)  # type: ignore[arg-type]

    if isinstance(exc, _TRANSIENT_EXCEPTION_TYPES):
        return OperationResult.transient_error(
            f"{type(exc).__name__}: {exc}",
            error_code="TIMEOUT" if isinstance(exc, TimeoutError) else "CONNECTION_ERROR",
        )

    message = str(exc)
    for code, pattern in _COMPILED_PATTERNS:
        if pattern.search(message):
            return OperationResult.transient_error(message, error_code=code)

    return OperationResult.permanent_error(
        message or type(exc).__name__,
        error_code="NON_RECOVERABLE",
    )


def is_recoverable_error(exc: BaseException) -> bool:
    """Return True if the exception is a transient failure worth retrying."""
    return classify_sync_error(exc).is_recoverable
