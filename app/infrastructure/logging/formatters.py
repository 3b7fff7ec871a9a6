"""Custom log processors for structured logging.

These processors are installed by configure_logging to keep identity data
out of the logs: user payloads routinely carry passwords, temporary
credentials and provider tokens.

Usage:
    from infrastructure.logging.formatters import mask_sensitive_data
"""

from typing import Any


def add_app_info(app_name: str, app_version: str = "unknown"):
    """Create a processor that adds application info to log entries.

    Args:
        app_name: Name of the application.
        app_version: Version string for the application.

    Returns:
        A structlog processor function.
    """

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict["app_name"] = app_name
        event_dict["app_version"] = app_version
        return event_dict

    return processor


# Sensitive field patterns that should be masked in logs
SENSITIVE_PATTERNS = frozenset(
    {
        "password",
        "secret",
        "token",
        "api_key",
        "apikey",
        "authorization",
        "credential",
        "private_key",
        "access_token",
        "refresh_token",
        "otp",
        "totp",
        "session_id",
        "cookie",
        "jwt",
        "bearer",
    }
)


def _is_sensitive(key: str, patterns: frozenset[str]) -> bool:
    key_lower = key.lower()
    return any(pattern in key_lower for pattern in patterns)


def _mask_value(value: Any, patterns: frozenset[str], mask_value: str) -> Any:
    """Recursively mask sensitive keys inside nested dicts and lists."""
    if isinstance(value, dict):
        return {
            k: (
                mask_value
                if isinstance(k, str) and _is_sensitive(k, patterns) and v is not None
                else _mask_value(v, patterns, mask_value)
            )
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_mask_value(item, patterns, mask_value) for item in value]
    return value


def mask_sensitive_data(
    mask_value: str = "***REDACTED***",
    additional_patterns: frozenset[str] | None = None,
):
    """Create a processor that masks sensitive data in log entries.

    Keys containing a sensitive pattern (case-insensitive) are replaced,
    including keys nested inside dict or list values such as user payloads.

    Args:
        mask_value: The string to replace sensitive values with.
        additional_patterns: Extra patterns to consider sensitive.

    Returns:
        A structlog processor function.

    Example:
        processor = mask_sensitive_data(additional_patterns=frozenset({"ssn"}))
    """
    patterns = SENSITIVE_PATTERNS
    if additional_patterns:
        patterns = patterns | additional_patterns

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        return _mask_value(event_dict, patterns, mask_value)

    return processor


def truncate_large_values(max_length: int = 500):
    """Create a processor that truncates overly large string values.

    Args:
        max_length: Maximum string length before truncation.

    Returns:
        A structlog processor function.
    """

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        for key, value in event_dict.items():
            if isinstance(value, str) and len(value) > max_length:
                event_dict[key] = (
                    value[:max_length] + f"...[truncated, {len(value)} chars total]"
                )
        return event_dict

    return processor
