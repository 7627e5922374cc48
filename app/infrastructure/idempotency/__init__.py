"""Idempotency ledger.

The ledger records the response of the first committed execution of an
operation under its idempotency key. Records are written inside the
operation's unit of work, so a key is recorded if and only if the mutation
committed.

Usage:

    from infrastructure.idempotency import IdempotencyLedger, StoredResponse

    ledger = IdempotencyLedger(store, table_name="idempotency_records")

    cached = ledger.lookup(idempotency_key)
    if cached is not None:
        return cached
"""

from infrastructure.idempotency.key_builder import IdempotencyKeyBuilder
from infrastructure.idempotency.ledger import IdempotencyLedger
from infrastructure.idempotency.models import IdempotencyRecord, StoredResponse

__all__ = [
    "IdempotencyLedger",
    "IdempotencyRecord",
    "StoredResponse",
    "IdempotencyKeyBuilder",
]
