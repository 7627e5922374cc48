"""Backoff policy for the operation executor.

Pure delay computation and retry decisions. Nothing in this module sleeps;
the executor owns the single suspension point and asks the policy how long
to wait.

Strategies:
    LINEAR: constant ``base`` delay
    LINEAR_JITTER: ``base + uniform(0, jitter)``
    EXPONENTIAL: ``base * 2 ** (attempt - 1)``, capped at ``max_delay``
    EXPONENTIAL_JITTER: exponential delay plus ``uniform(0, jitter)``, capped

Attempts are numbered from 1; ``delay(attempt)`` is the wait after attempt
``attempt`` failed.

Usage:
    from infrastructure.resilience.backoff import BackoffPolicy

    policy = BackoffPolicy.exponential(max_attempts=5, base_delay_seconds=0.1)
    policy.schedule()  # [0.1, 0.2, 0.4, 0.8]
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from infrastructure.operations.errors import ErrorClass

if TYPE_CHECKING:
    from infrastructure.configuration import RetrySettings


class BackoffStrategy(Enum):
    LINEAR = "linear"
    LINEAR_JITTER = "linear_jitter"
    EXPONENTIAL = "exponential"
    EXPONENTIAL_JITTER = "exponential_jitter"


def compute_delay(
    attempt: int,
    strategy: BackoffStrategy,
    base: float,
    jitter: float = 0.0,
    cap: Optional[float] = None,
    rng: Optional[random.Random] = None,
) -> float:
    """Compute the delay after a failed attempt.

    Args:
        attempt: The attempt that just failed (1-based)
        strategy: Backoff strategy
        base: Base delay in seconds
        jitter: Upper bound of the uniform jitter in seconds
        cap: Maximum delay for exponential strategies; None means uncapped
        rng: Random source for jitter (module-level random when omitted)

    Returns:
        Delay in seconds, never negative
    """
    if attempt < 1:
        raise ValueError("attempt must be at least 1")

    if strategy in (BackoffStrategy.LINEAR, BackoffStrategy.LINEAR_JITTER):
        delay = base
    else:
        delay = base * (2 ** (attempt - 1))

    if strategy in (BackoffStrategy.LINEAR_JITTER, BackoffStrategy.EXPONENTIAL_JITTER):
        if jitter > 0:
            delay += (rng or random).uniform(0, jitter)

    if cap is not None and strategy in (
        BackoffStrategy.EXPONENTIAL,
        BackoffStrategy.EXPONENTIAL_JITTER,
    ):
        delay = min(delay, cap)

    return max(delay, 0.0)


def should_retry(attempt: int, max_attempts: int, error_class: ErrorClass) -> bool:
    """Decide whether another attempt may follow a failed one.

    Returns:
        True only for transient failures with attempts remaining
    """
    if attempt >= max_attempts:
        return False
    return error_class == ErrorClass.TRANSIENT


@dataclass(frozen=True)
class BackoffPolicy:
    """Immutable retry policy.

    Attributes:
        strategy: Backoff strategy
        max_attempts: Total attempts including the first one
        base_delay_seconds: Base delay
        jitter_seconds: Upper bound of the uniform jitter (jitter strategies)
        max_delay_seconds: Cap for exponential strategies, None for no cap

    Example:
        # Conflict twice then success: sleeps 0.1s then 0.2s
        policy = BackoffPolicy.exponential(max_attempts=5, base_delay_seconds=0.1)
    """

    strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    max_attempts: int = 4
    base_delay_seconds: float = 7.5
    jitter_seconds: float = 0.0
    max_delay_seconds: Optional[float] = None

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must be non-negative")
        if self.jitter_seconds < 0:
            raise ValueError("jitter_seconds must be non-negative")
        if (
            self.max_delay_seconds is not None
            and self.max_delay_seconds < self.base_delay_seconds
        ):
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")

    @classmethod
    def linear(
        cls, max_attempts: int = 6, base_delay_seconds: float = 7.5
    ) -> "BackoffPolicy":
        """Constant delay; the listing and tour update default (6 x 7.5s)."""
        return cls(
            strategy=BackoffStrategy.LINEAR,
            max_attempts=max_attempts,
            base_delay_seconds=base_delay_seconds,
        )

    @classmethod
    def linear_jitter(
        cls,
        max_attempts: int = 3,
        base_delay_seconds: float = 5.0,
        jitter_seconds: float = 1.0,
    ) -> "BackoffPolicy":
        """Constant delay plus jitter (3 x 5s + up to 1s)."""
        return cls(
            strategy=BackoffStrategy.LINEAR_JITTER,
            max_attempts=max_attempts,
            base_delay_seconds=base_delay_seconds,
            jitter_seconds=jitter_seconds,
        )

    @classmethod
    def exponential(
        cls,
        max_attempts: int = 4,
        base_delay_seconds: float = 7.5,
        max_delay_seconds: Optional[float] = None,
    ) -> "BackoffPolicy":
        """Doubling delay; the create default (4 attempts from 7.5s)."""
        return cls(
            strategy=BackoffStrategy.EXPONENTIAL,
            max_attempts=max_attempts,
            base_delay_seconds=base_delay_seconds,
            max_delay_seconds=max_delay_seconds,
        )

    @classmethod
    def exponential_jitter(
        cls,
        max_attempts: int = 4,
        base_delay_seconds: float = 7.5,
        jitter_seconds: float = 1.0,
        max_delay_seconds: Optional[float] = None,
    ) -> "BackoffPolicy":
        return cls(
            strategy=BackoffStrategy.EXPONENTIAL_JITTER,
            max_attempts=max_attempts,
            base_delay_seconds=base_delay_seconds,
            jitter_seconds=jitter_seconds,
            max_delay_seconds=max_delay_seconds,
        )

    @classmethod
    def named(cls, strategy: str) -> "BackoffPolicy":
        """Policy for a strategy name with that strategy's default parameters.

        Raises:
            ValueError: If the name is not a known strategy
        """
        factories = {
            BackoffStrategy.LINEAR: cls.linear,
            BackoffStrategy.LINEAR_JITTER: cls.linear_jitter,
            BackoffStrategy.EXPONENTIAL: cls.exponential,
            BackoffStrategy.EXPONENTIAL_JITTER: cls.exponential_jitter,
        }
        return factories[BackoffStrategy(strategy.lower())]()

    @classmethod
    def from_settings(cls, settings: "RetrySettings") -> "BackoffPolicy":
        return cls(
            strategy=BackoffStrategy(settings.strategy),
            max_attempts=settings.max_attempts,
            base_delay_seconds=settings.base_delay_seconds,
            jitter_seconds=settings.jitter_seconds,
            max_delay_seconds=settings.max_delay_seconds,
        )

    def delay(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        """Delay to wait after attempt ``attempt`` failed."""
        return compute_delay(
            attempt,
            self.strategy,
            self.base_delay_seconds,
            jitter=self.jitter_seconds,
            cap=self.max_delay_seconds,
            rng=rng,
        )

    def should_retry(self, attempt: int, error_class: ErrorClass) -> bool:
        return should_retry(attempt, self.max_attempts, error_class)

    def schedule(self) -> List[float]:
        """Jitter-free delays between consecutive attempts."""
        return [
            compute_delay(
                attempt,
                self.strategy,
                self.base_delay_seconds,
                jitter=0.0,
                cap=self.max_delay_seconds,
            )
            for attempt in range(1, self.max_attempts)
        ]
