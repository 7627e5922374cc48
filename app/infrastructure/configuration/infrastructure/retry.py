"""Retry policy infrastructure settings."""

from typing import Optional

from pydantic import Field, field_validator, model_validator

from infrastructure.configuration.base import InfrastructureSettings

SUPPORTED_STRATEGIES = (
    "linear",
    "linear_jitter",
    "exponential",
    "exponential_jitter",
)


class RetrySettings(InfrastructureSettings):
    """Default backoff policy for the operation executor.

    Environment Variables:
        RETRY_STRATEGY: 'linear', 'linear_jitter', 'exponential' or 'exponential_jitter'
        RETRY_MAX_ATTEMPTS: Total attempts including the first one (default: 4)
        RETRY_BASE_DELAY_SECONDS: Base delay between attempts (default: 7.5s)
        RETRY_JITTER_SECONDS: Upper bound of the uniform jitter (default: 1s)
        RETRY_MAX_DELAY_SECONDS: Cap for exponential delays (default: 60s, unset = no cap)

    Exponential Backoff:
        Delay calculation: min(base_delay * (2 ^ (attempt - 1)), max_delay)

        Example with defaults (base=7.5s, max=60s):
            After attempt 1: 7.5s
            After attempt 2: 15s
            After attempt 3: 30s

    Example:
        ```python
        from infrastructure.services import get_settings
        from infrastructure.resilience.backoff import BackoffPolicy

        policy = BackoffPolicy.from_settings(get_settings().retry)
        ```
    """

    strategy: str = Field(default="exponential", alias="RETRY_STRATEGY")
    max_attempts: int = Field(default=4, alias="RETRY_MAX_ATTEMPTS")
    base_delay_seconds: float = Field(default=7.5, alias="RETRY_BASE_DELAY_SECONDS")
    jitter_seconds: float = Field(default=1.0, alias="RETRY_JITTER_SECONDS")
    max_delay_seconds: Optional[float] = Field(
        default=60.0, alias="RETRY_MAX_DELAY_SECONDS"
    )

    @field_validator("strategy")
    @classmethod
    def validate_strategy(cls, value: str) -> str:
        value = value.lower()
        if value not in SUPPORTED_STRATEGIES:
            raise ValueError(
                f"Unknown retry strategy: {value}. "
                f"Supported: {', '.join(SUPPORTED_STRATEGIES)}"
            )
        return value

    @field_validator("max_attempts")
    @classmethod
    def validate_max_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_attempts must be at least 1")
        return value

    @model_validator(mode="after")
    def validate_delays(self) -> "RetrySettings":
        if self.base_delay_seconds < 0 or self.jitter_seconds < 0:
            raise ValueError("delays must be non-negative")
        if (
            self.max_delay_seconds is not None
            and self.max_delay_seconds < self.base_delay_seconds
        ):
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        return self
