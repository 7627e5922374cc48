"""Idempotency ledger.

Durable mapping from idempotency key to the response of the first committed
execution. The ledger lives in the same document store as business data so
``record`` can be staged in the operation's own unit of work: the mutation
and its ledger entry commit together or not at all.

Usage:
    from infrastructure.idempotency import IdempotencyLedger

    ledger = IdempotencyLedger(store, table_name="idempotency_records")

    cached = ledger.lookup(key)
    if cached is not None:
        return cached

    with store.begin() as uow:
        body = operation(uow)
        ledger.record(key, StoredResponse.from_result(body), uow)
"""

import time
from typing import Callable, Optional

import structlog

from infrastructure.idempotency.models import IdempotencyRecord, StoredResponse
from infrastructure.operations.errors import (
    DuplicateKeyError,
    ErrorKind,
    TransactionError,
)
from infrastructure.persistence.unit_of_work import DocumentStore, UnitOfWork

logger = structlog.get_logger()

DEFAULT_LEDGER_TABLE = "idempotency_records"
PARTITION_KEY = "idempotency_key"
EXPIRY_ATTRIBUTE = "ttl"


class IdempotencyLedger:
    """Idempotency ledger over a document store.

    Args:
        store: Document store shared with business data
        table_name: Ledger table (partition key ``idempotency_key``)
        ttl_seconds: Record lifetime; None or 0 keeps records forever
        clock: Returns the current epoch time
    """

    def __init__(
        self,
        store: DocumentStore,
        table_name: str = DEFAULT_LEDGER_TABLE,
        ttl_seconds: Optional[int] = 86400,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.table_name = table_name
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        store.register_table(table_name, PARTITION_KEY)

    def get_record(self, key: str) -> Optional[IdempotencyRecord]:
        """Consistent read of the live record for a key.

        Returns:
            The record, or None when absent or expired

        Raises:
            StorageError: If the store cannot be read (transient)
            TransactionError: If the stored record cannot be parsed
        """
        item = self.store.get_item(self.table_name, {PARTITION_KEY: key}, consistent=True)
        if item is None:
            logger.debug("idempotency_ledger_miss", idempotency_key=key)
            return None

        try:
            record = IdempotencyRecord.from_item(item, key_attribute=PARTITION_KEY)
        except (KeyError, TypeError, ValueError) as exc:
            logger.error(
                "idempotency_record_unreadable", idempotency_key=key, error=str(exc)
            )
            raise TransactionError(
                f"Idempotency record for key {key!r} is unreadable: {exc}",
                error_code="CORRUPT_LEDGER_RECORD",
            ) from exc

        if record.is_expired(self._clock()):
            logger.debug(
                "idempotency_record_expired",
                idempotency_key=key,
                expires_at=record.expires_at,
            )
            return None

        logger.debug("idempotency_ledger_hit", idempotency_key=key)
        return record

    def lookup(self, key: str) -> Optional[StoredResponse]:
        """Return the stored response for a key, or None."""
        record = self.get_record(key)
        return record.response if record else None

    def record(
        self, key: str, response: StoredResponse, uow: UnitOfWork
    ) -> IdempotencyRecord:
        """Stage the ledger entry for a key in an open unit of work.

        The put is conditional on no live record existing, so a concurrent
        winner makes this unit of work's commit fail with DuplicateKeyError.

        Raises:
            TransactionError: If the unit of work is not open
            DuplicateKeyError: If a live record already exists
        """
        if not uow.is_open:
            raise TransactionError(
                f"Cannot record idempotency key in a {uow.state.value} unit of work"
            )

        if self.get_record(key) is not None:
            raise DuplicateKeyError(
                f"Idempotency record already exists for key {key!r}",
                error_code="DUPLICATE_IDEMPOTENCY_KEY",
            )

        record = IdempotencyRecord.create(
            key, response, now=self._clock(), ttl_seconds=self.ttl_seconds
        )
        uow.put(
            self.table_name,
            record.to_item(key_attribute=PARTITION_KEY),
            if_absent=True,
            expiry_attribute=EXPIRY_ATTRIBUTE,
            condition_kind=ErrorKind.DUPLICATE_KEY,
        )
        return record
