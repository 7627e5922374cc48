"""Shared fixtures for the test suite.

Level: Application-wide fixtures (stores, ledger, executor with recorded sleeps)
"""

from typing import List

import pytest

from infrastructure.idempotency.ledger import IdempotencyLedger
from infrastructure.persistence.memory import InMemoryDocumentStore
from infrastructure.resilience.backoff import BackoffPolicy
from infrastructure.resilience.executor import OperationExecutor
from infrastructure.services.providers import reset_providers

LEDGER_TABLE = "idempotency_records"


class FakeClock:
    """Deterministic epoch clock for expiry tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_providers():
    """Clear cached providers so tests never share settings or stores."""
    reset_providers()
    yield
    reset_providers()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store(clock):
    """In-memory document store driven by the fake clock."""
    return InMemoryDocumentStore(clock=clock)


@pytest.fixture
def ledger(memory_store, clock):
    """Idempotency ledger over the in-memory store."""
    return IdempotencyLedger(
        memory_store, table_name=LEDGER_TABLE, ttl_seconds=3600, clock=clock
    )


@pytest.fixture
def sleeps() -> List[float]:
    """Delays passed to the executor's sleep function."""
    return []


@pytest.fixture
def executor(memory_store, ledger, sleeps):
    """Executor over the in-memory store; sleeps are recorded, not taken."""
    return OperationExecutor(
        store=memory_store,
        ledger=ledger,
        policy=BackoffPolicy.exponential(max_attempts=5, base_delay_seconds=0.1),
        sleep=sleeps.append,
    )
