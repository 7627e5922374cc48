"""Custom structlog processors.

Usage:
    from infrastructure.logging.formatters import add_app_info, mask_sensitive_data
"""

from typing import Any

# Sensitive field patterns that should be masked in logs
SENSITIVE_PATTERNS = frozenset(
    {
        "password",
        "secret",
        "token",
        "api_key",
        "authorization",
        "credential",
        "access_key",
        "session_token",
    }
)

# Keys that match a pattern but carry no secret. The DynamoDB request token
# is what ties a log line to an ambiguous commit.
TRACEABLE_KEYS = frozenset({"request_token"})


def add_app_info(app_name: str, app_version: str = "unknown"):
    """Create a processor that adds application info to log entries.

    Args:
        app_name: Name of the application.
        app_version: Version string (usually settings.GIT_SHA).

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


def mask_sensitive_data(
    mask_value: str = "***REDACTED***",
    additional_patterns: frozenset[str] | None = None,
    allowed_keys: frozenset[str] = TRACEABLE_KEYS,
):
    """Create a processor that masks values of sensitive keys.

    Matching is a case-insensitive substring test on the key name.

    Args:
        mask_value: The string to replace sensitive values with.
        additional_patterns: Extra patterns to consider sensitive.
        allowed_keys: Exact key names never masked.

    Returns:
        A structlog processor function.
    """
    patterns = SENSITIVE_PATTERNS
    if additional_patterns:
        patterns = patterns | additional_patterns

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        return {
            key: (
                mask_value
                if value is not None
                and key not in allowed_keys
                and any(p in key.lower() for p in patterns)
                else value
            )
            for key, value in event_dict.items()
        }

    return processor


def truncate_large_values(max_length: int = 500):
    """Create a processor that truncates overly large string values.

    Stored responses can be large; this keeps a replayed body from flooding
    the logs.

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
