"""Infrastructure configuration module - public API.

This module provides centralized configuration management using Pydantic
BaseSettings with domain-based organization.

Exports:
    Settings: Main settings class (for testing/overrides)
    RetrySettings: Retry policy settings class
    IdempotencySettings: Idempotency ledger settings class
    PersistenceSettings: Document store settings class

Example:
    ```python
    from infrastructure.services import get_settings

    settings = get_settings()

    backend = settings.persistence.backend
    ttl = settings.idempotency.IDEMPOTENCY_TTL_SECONDS
    strategy = settings.retry.strategy
    ```
"""

from infrastructure.configuration.settings import Settings
from infrastructure.configuration.infrastructure import (
    IdempotencySettings,
    PersistenceSettings,
    RetrySettings,
)

__all__ = ["Settings", "RetrySettings", "IdempotencySettings", "PersistenceSettings"]
