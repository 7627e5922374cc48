"""Document store infrastructure settings."""

from pydantic import Field, field_validator

from infrastructure.configuration.base import InfrastructureSettings

SUPPORTED_BACKENDS = ("memory", "dynamodb")


class PersistenceSettings(InfrastructureSettings):
    """Document store configuration.

    Environment Variables:
        PERSISTENCE_BACKEND: 'memory' (development, tests) or 'dynamodb' (default: memory)
        DYNAMODB_CONNECT_TIMEOUT_SECONDS: boto3 connect timeout (default: 5)
        DYNAMODB_READ_TIMEOUT_SECONDS: boto3 read timeout (default: 10)
        DYNAMODB_CLIENT_MAX_ATTEMPTS: botocore's own retry attempts (default: 2)

    Transaction retries belong to the operation executor, which re-checks the
    idempotency ledger between attempts.
    """

    backend: str = Field(default="memory", alias="PERSISTENCE_BACKEND")
    connect_timeout_seconds: float = Field(
        default=5.0, alias="DYNAMODB_CONNECT_TIMEOUT_SECONDS"
    )
    read_timeout_seconds: float = Field(
        default=10.0, alias="DYNAMODB_READ_TIMEOUT_SECONDS"
    )
    client_max_attempts: int = Field(default=2, alias="DYNAMODB_CLIENT_MAX_ATTEMPTS")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in SUPPORTED_BACKENDS:
            raise ValueError(
                f"Unknown persistence backend: {value}. "
                f"Supported: {', '.join(SUPPORTED_BACKENDS)}"
            )
        return value
