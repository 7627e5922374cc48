"""Idempotency ledger infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class IdempotencySettings(InfrastructureSettings):
    """Idempotency ledger configuration for preventing duplicate operations.

    Environment Variables:
        IDEMPOTENCY_TABLE: Ledger table name (default: idempotency_records)
        IDEMPOTENCY_TTL_SECONDS: Time-to-live for ledger records (default: 86400s = 24h)
        IDEMPOTENCY_KEY_HEADER: Request header carrying the key (default: Idempotency-Key)
        IDEMPOTENCY_KEY_MAX_LENGTH: Longest accepted key (default: 255)

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()
        ttl = settings.idempotency.IDEMPOTENCY_TTL_SECONDS
        ```
    """

    IDEMPOTENCY_TABLE: str = Field(
        default="idempotency_records", alias="IDEMPOTENCY_TABLE"
    )
    IDEMPOTENCY_TTL_SECONDS: int = Field(default=86400, alias="IDEMPOTENCY_TTL_SECONDS")
    IDEMPOTENCY_KEY_HEADER: str = Field(
        default="Idempotency-Key", alias="IDEMPOTENCY_KEY_HEADER"
    )
    IDEMPOTENCY_KEY_MAX_LENGTH: int = Field(
        default=255, alias="IDEMPOTENCY_KEY_MAX_LENGTH"
    )
