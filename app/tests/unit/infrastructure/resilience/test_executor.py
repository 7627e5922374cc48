"""Unit tests for the idempotent operation executor.

Tests cover:
- First execution commits the mutation and its ledger entry together
- Replays return the stored response without re-executing
- Transient failures back off and retry; permanent failures short-circuit
- Ambiguous commits are replayed on the next attempt
- Lost duplicate races degrade to a ledger lookup
- Invalid idempotency keys are rejected before any store access
"""

from typing import Any, List, Optional
from unittest.mock import MagicMock

import pytest

from infrastructure.idempotency.ledger import IdempotencyLedger
from infrastructure.idempotency.models import StoredResponse
from infrastructure.logging.context import get_correlation_id
from infrastructure.operations.errors import (
    DuplicateKeyError,
    ErrorKind,
    InvalidKeyError,
    NotFoundError,
    StorageError,
    StorageUnavailableError,
    TransactionConflictError,
    UnknownError,
    ValidationError,
)
from infrastructure.operations.status import OperationStatus
from infrastructure.persistence.memory import InMemoryDocumentStore
from infrastructure.resilience.backoff import BackoffPolicy
from infrastructure.resilience.executor import OperationExecutor

pytestmark = pytest.mark.unit

RECORDS = "records"


class RecordingOperation:
    """Creates one record per call and optionally fails the first calls."""

    def __init__(self, failures: Optional[List[Exception]] = None, result: Any = None):
        self.calls = 0
        self._failures = list(failures or [])
        self._result = result

    def __call__(self, uow):
        self.calls += 1
        uow.put(RECORDS, {"id": "r-1", "name": "first"}, if_absent=True)
        if self._failures:
            raise self._failures.pop(0)
        return self._result if self._result is not None else {"data": {"id": "r-1"}}


class LostAcknowledgementStore(InMemoryDocumentStore):
    """Applies commits, then reports a connection failure for the first ones."""

    def __init__(self, lost: int = 1, **kwargs):
        super().__init__(**kwargs)
        self.lost = lost

    def apply(self, writes, read_set):
        super().apply(writes, read_set)
        if self.lost:
            self.lost -= 1
            raise StorageError(
                "Connection reset after the request was sent",
                error_code="CONNECTION_ERROR",
            )


def _executor(store, ledger, sleeps, max_attempts=5) -> OperationExecutor:
    return OperationExecutor(
        store=store,
        ledger=ledger,
        policy=BackoffPolicy.exponential(max_attempts=max_attempts, base_delay_seconds=0.1),
        sleep=sleeps.append,
    )


class TestIdempotentReplay:
    def test_first_execution_commits_record_and_ledger_entry(
        self, executor, memory_store, ledger
    ):
        operation = RecordingOperation()

        result = executor.execute("abc", operation)

        assert result.is_success
        assert result.message == "committed"
        assert result.attempts == 1
        assert not result.replayed
        assert result.data == StoredResponse(200, {"data": {"id": "r-1"}})
        assert len(memory_store.items(RECORDS)) == 1
        assert len(memory_store.items(ledger.table_name)) == 1

    def test_same_key_replays_without_executing(self, executor, memory_store, ledger):
        operation = RecordingOperation()
        first = executor.execute("abc", operation)

        second = executor.execute("abc", operation)

        assert second.is_success
        assert second.replayed
        assert second.message == "replayed"
        assert second.attempts == 0
        assert second.data == first.data
        assert operation.calls == 1
        assert len(memory_store.items(RECORDS)) == 1
        assert len(memory_store.items(ledger.table_name)) == 1

    def test_replay_keeps_status_code(self, executor):
        operation = RecordingOperation()
        executor.execute("abc", operation, status_code=201)

        result = executor.execute("abc", operation)

        assert result.data.status_code == 201
        assert result.http_status == 201

    def test_different_keys_execute_independently(self, executor, memory_store):
        counter = {"n": 0}

        def create(uow):
            counter["n"] += 1
            uow.put(RECORDS, {"id": f"r-{counter['n']}"})
            return {"n": counter["n"]}

        executor.execute("abc", create)
        executor.execute("def", create)

        assert counter["n"] == 2
        assert len(memory_store.items(RECORDS)) == 2

    def test_expired_ledger_entry_allows_new_execution(self, executor, clock):
        counter = {"n": 0}

        def create(uow):
            counter["n"] += 1
            uow.put(RECORDS, {"id": f"r-{counter['n']}"})
            return {"n": counter["n"]}

        executor.execute("abc", create)
        clock.advance(3601)

        result = executor.execute("abc", create)

        assert not result.replayed
        assert result.data.body == {"n": 2}

    def test_result_is_normalized_through_json(self, executor):
        result = executor.execute("abc", lambda uow: {"ids": ("a", "b")})

        assert result.data.body == {"ids": ["a", "b"]}


class TestRetries:
    def test_conflict_twice_then_success(self, executor, sleeps, memory_store):
        operation = RecordingOperation(
            failures=[
                TransactionConflictError("write conflict"),
                TransactionConflictError("write conflict"),
            ]
        )

        result = executor.execute("abc", operation)

        assert result.is_success
        assert result.attempts == 3
        assert operation.calls == 3
        assert sleeps == pytest.approx([0.1, 0.2])
        assert len(memory_store.items(RECORDS)) == 1

    def test_read_conflict_from_concurrent_writer_is_retried(
        self, executor, sleeps, memory_store
    ):
        setup = memory_store.begin()
        setup.put(RECORDS, {"id": "counter", "value": 0})
        setup.commit()
        calls = {"n": 0}

        def increment(uow):
            calls["n"] += 1
            current = uow.get(RECORDS, {"id": "counter"})
            if calls["n"] == 1:
                rival = memory_store.begin()
                rival.update(RECORDS, {"id": "counter"}, set_fields={"value": 10})
                rival.commit()
            uow.update(
                RECORDS, {"id": "counter"}, set_fields={"value": current["value"] + 1}
            )
            return {"value": current["value"] + 1}

        result = executor.execute("abc", increment)

        assert result.is_success
        assert result.data.body == {"value": 11}
        assert sleeps == pytest.approx([0.1])
        assert memory_store.get_item(RECORDS, {"id": "counter"})["value"] == 11

    def test_transient_failures_exhaust_attempts(self, executor, sleeps, memory_store):
        last = StorageError("throttled", error_code="ThrottlingException")
        operation = RecordingOperation(
            failures=[StorageError("throttled") for _ in range(4)] + [last]
        )

        result = executor.execute("abc", operation)

        assert not result.is_success
        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.error is last
        assert result.attempts == 5
        assert operation.calls == 5
        assert sleeps == pytest.approx([0.1, 0.2, 0.4, 0.8])
        assert memory_store.items(RECORDS) == []

    def test_per_call_policy_overrides_default(self, executor, sleeps):
        operation = RecordingOperation(
            failures=[TransactionConflictError("write conflict") for _ in range(3)]
        )

        result = executor.execute(
            "abc",
            operation,
            policy=BackoffPolicy.linear(max_attempts=2, base_delay_seconds=1.0),
        )

        assert result.attempts == 2
        assert sleeps == [1.0]

    def test_storage_unavailable_on_begin_is_retried(self, memory_store, ledger, sleeps):
        store = MagicMock(wraps=memory_store)
        store.begin.side_effect = [
            StorageUnavailableError("no connection available"),
            memory_store.begin(),
        ]
        executor = _executor(store, ledger, sleeps)

        result = executor.execute("abc", RecordingOperation())

        assert result.is_success
        assert result.attempts == 2
        assert sleeps == pytest.approx([0.1])

    def test_builtin_timeouts_are_transient(self, executor, sleeps):
        operation = RecordingOperation(failures=[TimeoutError("read timed out")])

        result = executor.execute("abc", operation)

        assert result.is_success
        assert result.attempts == 2


class TestPermanentFailures:
    def test_validation_failure_leaves_no_trace(self, executor, sleeps, memory_store, ledger):
        error = ValidationError("name is required")
        operation = RecordingOperation(failures=[error])

        result = executor.execute("abc", operation)

        assert not result.is_success
        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error is error
        assert result.attempts == 1
        assert sleeps == []
        assert memory_store.items(RECORDS) == []
        assert memory_store.items(ledger.table_name) == []
        assert memory_store.commit_count == 0

    def test_failed_execution_is_not_recorded(self, executor):
        executor.execute("abc", RecordingOperation(failures=[ValidationError("bad")]))

        result = executor.execute("abc", RecordingOperation())

        assert result.is_success
        assert not result.replayed

    def test_not_found_short_circuits(self, executor, sleeps):
        result = executor.execute(
            "abc", RecordingOperation(failures=[NotFoundError("no such listing")])
        )

        assert result.status == OperationStatus.NOT_FOUND
        assert result.http_status == 404
        assert sleeps == []

    def test_unknown_exceptions_fail_closed(self, executor, sleeps):
        result = executor.execute(
            "abc", RecordingOperation(failures=[RuntimeError("boom")])
        )

        assert isinstance(result.error, UnknownError)
        assert result.attempts == 1
        assert sleeps == []

    def test_non_serializable_result_is_rejected(self, executor, memory_store):
        result = executor.execute("abc", RecordingOperation(result=object()))

        assert result.error.kind == ErrorKind.VALIDATION
        assert result.error_code == "RESPONSE_NOT_SERIALIZABLE"
        assert memory_store.items(RECORDS) == []

    def test_business_condition_failure_at_commit(self, executor, memory_store):
        def update_missing(uow):
            uow.update(RECORDS, {"id": "missing"}, set_fields={"name": "x"})
            return {"data": None}

        result = executor.execute("abc", update_missing)

        assert result.error.kind == ErrorKind.NOT_FOUND
        assert memory_store.items(RECORDS) == []


class TestInvalidKeys:
    @pytest.mark.parametrize("key", ["", "   ", None, 42])
    def test_missing_key_is_rejected(self, executor, key):
        operation = RecordingOperation()

        result = executor.execute(key, operation)

        assert isinstance(result.error, InvalidKeyError)
        assert result.error_code == "MISSING_IDEMPOTENCY_KEY"
        assert result.attempts == 0
        assert result.http_status == 400
        assert operation.calls == 0

    def test_over_long_key_is_rejected(self, executor):
        result = executor.execute("k" * 256, RecordingOperation())

        assert result.error_code == "IDEMPOTENCY_KEY_TOO_LONG"

    def test_key_at_limit_is_accepted(self, executor):
        assert executor.execute("k" * 255, RecordingOperation()).is_success

    def test_invalid_key_never_touches_the_store(self, sleeps):
        store = MagicMock()
        ledger = MagicMock()

        _executor(store, ledger, sleeps).execute("", RecordingOperation())

        store.begin.assert_not_called()
        ledger.lookup.assert_not_called()


class TestAmbiguousCommits:
    def test_lost_acknowledgement_is_replayed(self, clock, sleeps):
        store = LostAcknowledgementStore(lost=1, clock=clock)
        ledger = IdempotencyLedger(store, ttl_seconds=3600, clock=clock)
        operation = RecordingOperation()

        result = _executor(store, ledger, sleeps).execute("abc", operation)

        assert result.is_success
        assert result.replayed
        assert result.attempts == 1
        assert operation.calls == 1
        assert sleeps == pytest.approx([0.1])
        assert len(store.items(RECORDS)) == 1


class TestDuplicateKeys:
    def test_concurrent_winner_is_returned(self, executor, memory_store, ledger):
        winner = StoredResponse(200, {"data": {"id": "winner"}})

        def operation(uow):
            rival = memory_store.begin()
            ledger.record("abc", winner, rival)
            rival.commit()
            uow.put(RECORDS, {"id": "loser"})
            return {"data": {"id": "loser"}}

        result = executor.execute("abc", operation)

        assert result.is_success
        assert result.replayed
        assert result.data == winner
        assert memory_store.items(RECORDS) == []

    def test_duplicate_without_live_record_is_retried(self, memory_store, sleeps):
        ledger = MagicMock()
        ledger.lookup.return_value = None
        ledger.record.side_effect = DuplicateKeyError("record exists")
        executor = _executor(memory_store, ledger, sleeps, max_attempts=2)

        result = executor.execute("abc", RecordingOperation())

        assert result.error.kind == ErrorKind.TRANSACTION_CONFLICT
        assert result.error_code == "DUPLICATE_KEY_UNRESOLVED"
        assert result.attempts == 2
        assert sleeps == pytest.approx([0.1])


class TestExecutionContext:
    def test_operation_runs_with_bound_correlation_id(self, executor):
        seen: List[Optional[str]] = []

        def operation(uow):
            seen.append(get_correlation_id())
            return {}

        executor.execute("abc", operation)

        assert seen[0] is not None
        assert get_correlation_id() is None

    def test_custom_classifier_is_used(self, memory_store, ledger, sleeps):
        classifier = MagicMock(
            return_value=TransactionConflictError("treated as conflict")
        )
        executor = OperationExecutor(
            memory_store,
            ledger,
            policy=BackoffPolicy.linear(max_attempts=2, base_delay_seconds=0.5),
            classifier=classifier,
            sleep=sleeps.append,
        )

        result = executor.execute(
            "abc", RecordingOperation(failures=[RuntimeError("boom")])
        )

        assert result.is_success
        assert sleeps == [0.5]
