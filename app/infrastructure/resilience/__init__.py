"""Resilience patterns for the transactional write path.

Contains the backoff policy (pure delay computation and retry decisions) and
the idempotent operation executor that applies it around units of work.
"""

from infrastructure.resilience.backoff import (
    BackoffPolicy,
    BackoffStrategy,
    compute_delay,
    should_retry,
)
from infrastructure.resilience.executor import Operation, OperationExecutor

__all__ = [
    # Backoff
    "BackoffPolicy",
    "BackoffStrategy",
    "compute_delay",
    "should_retry",
    # Executor
    "Operation",
    "OperationExecutor",
]
