"""Unit tests for the idempotency ledger.

Tests cover:
- Lookup of absent, live and expired records
- Staging the record inside the caller's unit of work
- Duplicate detection before and at commit
- Unreadable records
"""

from unittest.mock import MagicMock

import pytest

from infrastructure.idempotency.ledger import IdempotencyLedger
from infrastructure.idempotency.models import StoredResponse
from infrastructure.operations.errors import (
    DuplicateKeyError,
    StorageError,
    TransactionError,
)

pytestmark = pytest.mark.unit

RESPONSE = StoredResponse(status_code=201, body={"data": {"listing_id": "l-1"}})


def _record_and_commit(ledger, store, key, response=RESPONSE):
    uow = store.begin()
    ledger.record(key, response, uow)
    uow.commit()


class TestLookup:
    def test_unknown_key_returns_none(self, ledger):
        assert ledger.lookup("abc") is None

    def test_committed_record_is_returned(self, ledger, memory_store):
        _record_and_commit(ledger, memory_store, "abc")

        assert ledger.lookup("abc") == RESPONSE

    def test_expired_record_is_treated_as_absent(self, ledger, memory_store, clock):
        _record_and_commit(ledger, memory_store, "abc")

        clock.advance(3601)

        assert ledger.lookup("abc") is None

    def test_unreadable_record_raises_transaction_error(self, ledger, memory_store):
        uow = memory_store.begin()
        uow.put(ledger.table_name, {"idempotency_key": "abc", "response_json": "{"})
        uow.commit()

        with pytest.raises(TransactionError) as exc_info:
            ledger.lookup("abc")

        assert exc_info.value.error_code == "CORRUPT_LEDGER_RECORD"

    def test_store_failures_propagate(self):
        store = MagicMock()
        store.get_item.side_effect = StorageError("throttled")
        ledger = IdempotencyLedger(store)

        with pytest.raises(StorageError):
            ledger.lookup("abc")


class TestRecord:
    def test_record_is_not_visible_before_commit(self, ledger, memory_store):
        uow = memory_store.begin()

        ledger.record("abc", RESPONSE, uow)

        assert ledger.lookup("abc") is None
        uow.commit()
        assert ledger.lookup("abc") == RESPONSE

    def test_aborted_unit_of_work_leaves_no_record(self, ledger, memory_store):
        uow = memory_store.begin()
        ledger.record("abc", RESPONSE, uow)

        uow.abort()

        assert ledger.lookup("abc") is None
        assert memory_store.items(ledger.table_name) == []

    def test_stored_item_carries_ttl(self, ledger, memory_store, clock):
        _record_and_commit(ledger, memory_store, "abc")

        (item,) = memory_store.items(ledger.table_name)
        assert item["ttl"] == int(clock()) + 3600
        assert item["operation_type"] == "api_response"

    def test_existing_record_raises_duplicate(self, ledger, memory_store):
        _record_and_commit(ledger, memory_store, "abc")

        with pytest.raises(DuplicateKeyError) as exc_info:
            ledger.record("abc", RESPONSE, memory_store.begin())

        assert exc_info.value.error_code == "DUPLICATE_IDEMPOTENCY_KEY"

    def test_concurrent_winner_fails_commit_with_duplicate(self, ledger, memory_store):
        loser = memory_store.begin()
        ledger.record("abc", StoredResponse(200, {"data": "loser"}), loser)

        _record_and_commit(ledger, memory_store, "abc")

        with pytest.raises(DuplicateKeyError):
            loser.commit()
        assert ledger.lookup("abc") == RESPONSE

    def test_expired_record_can_be_replaced(self, ledger, memory_store, clock):
        _record_and_commit(ledger, memory_store, "abc")
        clock.advance(3601)
        replacement = StoredResponse(200, {"data": "second"})

        _record_and_commit(ledger, memory_store, "abc", replacement)

        assert ledger.lookup("abc") == replacement

    def test_closed_unit_of_work_is_rejected(self, ledger, memory_store):
        uow = memory_store.begin()
        uow.commit()

        with pytest.raises(TransactionError):
            ledger.record("abc", RESPONSE, uow)
