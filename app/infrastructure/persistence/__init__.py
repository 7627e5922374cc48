"""Transactional persistence layer.

Document stores open units of work: atomic commit/abort boundaries around
staged puts, updates and deletes. The in-memory backend serves development
and tests; the DynamoDB backend commits through ``TransactWriteItems``.

Usage:
    from infrastructure.persistence import create_document_store

    store = create_document_store(settings)
    uow = store.begin()
    result = uow.run(lambda uow: uow.put("listings", {"id": "l-1"}))
"""

from infrastructure.persistence.dynamodb import (
    MAX_TRANSACTION_ITEMS,
    DynamoDBDocumentStore,
    DynamoDBUnitOfWork,
)
from infrastructure.persistence.factory import create_document_store
from infrastructure.persistence.memory import InMemoryDocumentStore, InMemoryUnitOfWork
from infrastructure.persistence.unit_of_work import (
    DocumentStore,
    UnitOfWork,
    UnitOfWorkState,
    WriteKind,
    WriteOperation,
)

__all__ = [
    "DocumentStore",
    "UnitOfWork",
    "UnitOfWorkState",
    "WriteKind",
    "WriteOperation",
    "InMemoryDocumentStore",
    "InMemoryUnitOfWork",
    "DynamoDBDocumentStore",
    "DynamoDBUnitOfWork",
    "MAX_TRANSACTION_ITEMS",
    "create_document_store",
]
