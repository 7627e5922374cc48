"""Idempotency key builder for consistent key generation."""

import hashlib
from typing import Any


class IdempotencyKeyBuilder:
    """Build deterministic idempotency keys.

    Event-driven call sites (payment callbacks, scheduled jobs, tour events)
    carry no client header; they derive the key from the event instead, with
    namespace isolation so two features never share a key.

    Example:
        >>> builder = IdempotencyKeyBuilder(namespace="tours")
        >>> key = builder.build(
        ...     operation="tour_created",
        ...     transaction_reference="txn-8841",
        ... )
        >>> key
        'tours:tour_created:a1b2c3d4e5f6g7h8'
    """

    def __init__(self, namespace: str):
        """Initialize key builder.

        Args:
            namespace: Namespace for key isolation (e.g., "tours")
        """
        if not namespace or ":" in namespace:
            raise ValueError("namespace must be non-empty and must not contain ':'")
        self.namespace = namespace

    def build(self, operation: str, **components: Any) -> str:
        """Build idempotency key from components.

        Components are sorted by name, so keyword order never changes the key.

        Args:
            operation: Operation type (e.g., "tour_created")
            **components: Key components (transaction_reference, tour_id, etc.)

        Returns:
            Idempotency key string
        """
        if not components:
            raise ValueError("at least one key component is required")

        sorted_components = sorted(components.items())

        key_parts = [self.namespace, operation]
        key_parts.extend(f"{k}={v}" for k, v in sorted_components)
        key_string = "|".join(str(part) for part in key_parts)

        key_hash = hashlib.sha256(key_string.encode()).hexdigest()[:16]

        return f"{self.namespace}:{operation}:{key_hash}"
