"""In-memory document store.

Thread-safe store with optimistic concurrency used for local development and
tests. Every item carries a version; a unit of work remembers the version of
each item it read and its commit fails with TransactionConflictError when
any of them changed in the meantime, like a document database's snapshot
isolation would.
"""

import copy
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from infrastructure.operations.errors import (
    TransactionConflictError,
    error_for_kind,
)
from infrastructure.persistence.unit_of_work import (
    DocumentStore,
    UnitOfWork,
    WriteKind,
    WriteOperation,
    first_condition_failure,
)

ItemRef = Tuple[str, Any]


class InMemoryDocumentStore(DocumentStore):
    """Document store kept in process memory.

    Args:
        key_schema: Optional table -> partition key attribute mapping
        clock: Returns the current epoch time; used for expiry checks
    """

    def __init__(
        self,
        key_schema: Optional[Dict[str, str]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(key_schema)
        self._clock = clock
        self._lock = threading.Lock()
        self._tables: Dict[str, Dict[Any, Dict[str, Any]]] = {}
        self._versions: Dict[ItemRef, int] = {}
        self._commits = 0

    @property
    def commit_count(self) -> int:
        """Number of units of work committed so far."""
        return self._commits

    def begin(self) -> "InMemoryUnitOfWork":
        return InMemoryUnitOfWork(self)

    def get_item(
        self, table: str, key: Dict[str, Any], consistent: bool = True
    ) -> Optional[Dict[str, Any]]:
        item, _ = self.read_versioned(table, key)
        return item

    def items(self, table: str) -> List[Dict[str, Any]]:
        """Return copies of every item in a table."""
        with self._lock:
            return [copy.deepcopy(item) for item in self._tables.get(table, {}).values()]

    def read_versioned(
        self, table: str, key: Dict[str, Any]
    ) -> Tuple[Optional[Dict[str, Any]], int]:
        """Read an item together with its current version (0 if never written)."""
        ref = (table, self.key_value(table, key))
        with self._lock:
            item = self._tables.get(table, {}).get(ref[1])
            return copy.deepcopy(item), self._versions.get(ref, 0)

    def apply(self, writes: List[WriteOperation], read_set: Dict[ItemRef, int]) -> None:
        """Validate conditions and read versions, then apply every write.

        Raises:
            DuplicateKeyError / ConflictError / NotFoundError: A staged
                condition failed
            TransactionConflictError: An item read by the unit of work was
                changed by another commit
        """
        with self._lock:
            now = self._clock()

            failures = [
                (index, write.condition_kind)
                for index, write in enumerate(writes)
                if write.has_condition and not self._condition_holds(write, now)
            ]
            failure = first_condition_failure(failures)
            if failure is not None:
                index, kind = failure
                write = writes[index]
                message = (
                    f"Condition failed for {write.kind.value} on "
                    f"'{write.table}' {write.key}"
                )
                raise error_for_kind(kind, message, error_code="ConditionalCheckFailed")

            for ref, version in read_set.items():
                if self._versions.get(ref, 0) != version:
                    raise TransactionConflictError(
                        f"Item {ref[1]!r} in '{ref[0]}' changed since it was read",
                        error_code="TransactionConflict",
                    )

            # Every write is computed against scratch copies first, so a
            # failing write leaves the tables untouched.
            staged: Dict[ItemRef, Optional[Dict[str, Any]]] = {}
            for write in writes:
                ref = (write.table, self.key_value(write.table, write.key))
                current = (
                    staged[ref]
                    if ref in staged
                    else self._tables.get(write.table, {}).get(ref[1])
                )
                staged[ref] = self._written(write, current)

            for (table_name, key_value), item in staged.items():
                table = self._tables.setdefault(table_name, {})
                if item is None:
                    table.pop(key_value, None)
                else:
                    table[key_value] = item
                ref = (table_name, key_value)
                self._versions[ref] = self._versions.get(ref, 0) + 1
            self._commits += 1

    def _existing(self, write: WriteOperation) -> Optional[Dict[str, Any]]:
        key_value = self.key_value(write.table, write.key)
        return self._tables.get(write.table, {}).get(key_value)

    def _condition_holds(self, write: WriteOperation, now: float) -> bool:
        existing = self._existing(write)
        if write.if_absent:
            if existing is None:
                return True
            if write.expiry_attribute:
                expires_at = existing.get(write.expiry_attribute)
                return expires_at is not None and expires_at < now
            return False
        if write.must_exist:
            return existing is not None
        return True

    @staticmethod
    def _written(
        write: WriteOperation, current: Optional[Dict[str, Any]]
    ) -> Optional[Dict[str, Any]]:
        """Return the item as it looks after ``write``; None when deleted."""
        if write.kind == WriteKind.PUT:
            return copy.deepcopy(write.item)
        if write.kind == WriteKind.DELETE:
            return None

        item = copy.deepcopy(current) if current is not None else dict(write.key)
        item.update(copy.deepcopy(write.set_fields))
        for attribute, values in write.add_to_set.items():
            item[attribute] = set(item.get(attribute) or ()) | set(values)
        for attribute, values in write.remove_from_set.items():
            remaining = set(item.get(attribute) or ()) - set(values)
            if remaining:
                item[attribute] = remaining
            else:
                item.pop(attribute, None)
        return item


class InMemoryUnitOfWork(UnitOfWork):
    """Unit of work over the in-memory store with read-set validation."""

    def __init__(self, store: InMemoryDocumentStore) -> None:
        super().__init__(store)
        self._memory_store = store
        self._read_set: Dict[ItemRef, int] = {}

    def _read(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        item, version = self._memory_store.read_versioned(table, key)
        self._read_set.setdefault((table, self._store.key_value(table, key)), version)
        return item

    def _apply(self, writes: List[WriteOperation]) -> None:
        self._memory_store.apply(writes, self._read_set)

    def _discard(self) -> None:
        self._read_set.clear()


__all__ = ["InMemoryDocumentStore", "InMemoryUnitOfWork"]
