"""Transactional unit of work over a document store.

A unit of work is the atomic commit/abort boundary around one attempt of an
operation. Mutations are staged as ``WriteOperation`` values and applied all
together by ``commit()``; nothing is visible to other readers until then and
``abort()`` discards everything that was staged.

Usage:
    from infrastructure.persistence import InMemoryDocumentStore

    store = InMemoryDocumentStore()

    with store.begin() as uow:
        uow.put("listings", {"id": "l-1", "title": "Sea view"})
        uow.update("promotions", {"id": "p-1"}, add_to_set={"listings": ["l-1"]})
    # committed on clean exit, aborted when the block raises
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

import structlog

from infrastructure.operations.classifiers import classify_exception
from infrastructure.operations.errors import (
    ErrorKind,
    TransactionError,
    ValidationError,
)

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_KEY_ATTRIBUTE = "id"


class UnitOfWorkState(Enum):
    """Lifecycle of a unit of work: OPEN -> COMMITTED | ABORTED."""

    OPEN = "open"
    COMMITTED = "committed"
    ABORTED = "aborted"


class WriteKind(Enum):
    PUT = "put"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class WriteOperation:
    """A single staged mutation.

    Attributes:
        kind: PUT, UPDATE or DELETE
        table: Logical table name
        key: Primary key of the target item (``{key_attribute: value}``)
        item: Full item for PUT
        set_fields: Attributes assigned by UPDATE
        add_to_set: Set attributes extended by UPDATE (``$addToSet``)
        remove_from_set: Set attributes reduced by UPDATE (``$pull``)
        if_absent: PUT only succeeds when no live item exists for the key
        must_exist: UPDATE/DELETE only succeed when the item exists
        expiry_attribute: Epoch-seconds attribute; an existing item past its
            expiry counts as absent for ``if_absent``
        condition_kind: Error kind reported when the condition fails at commit
    """

    kind: WriteKind
    table: str
    key: Dict[str, Any]
    item: Optional[Dict[str, Any]] = None
    set_fields: Dict[str, Any] = field(default_factory=dict)
    add_to_set: Dict[str, List[Any]] = field(default_factory=dict)
    remove_from_set: Dict[str, List[Any]] = field(default_factory=dict)
    if_absent: bool = False
    must_exist: bool = False
    expiry_attribute: Optional[str] = None
    condition_kind: ErrorKind = ErrorKind.CONFLICT

    @property
    def has_condition(self) -> bool:
        return self.if_absent or self.must_exist


class DocumentStore(ABC):
    """A document store able to open transactional units of work.

    Tables are keyed by a single partition attribute, ``id`` unless
    registered otherwise with ``register_table``.
    """

    def __init__(self, key_schema: Optional[Dict[str, str]] = None) -> None:
        self._key_schema: Dict[str, str] = dict(key_schema or {})

    def register_table(self, table: str, key_attribute: str) -> None:
        """Declare the partition key attribute of a table."""
        self._key_schema[table] = key_attribute

    def key_attribute(self, table: str) -> str:
        return self._key_schema.get(table, DEFAULT_KEY_ATTRIBUTE)

    def key_value(self, table: str, key: Dict[str, Any]) -> Any:
        """Extract the partition key value from a key or item.

        Raises:
            ValidationError: If the partition key attribute is missing
        """
        attribute = self.key_attribute(table)
        if attribute not in key or key[attribute] is None:
            raise ValidationError(
                f"Missing key attribute '{attribute}' for table '{table}'"
            )
        return key[attribute]

    @abstractmethod
    def begin(self) -> "UnitOfWork":
        """Open a new unit of work.

        Raises:
            StorageUnavailableError: If no session or transaction handle can
                be allocated
        """

    @abstractmethod
    def get_item(
        self, table: str, key: Dict[str, Any], consistent: bool = True
    ) -> Optional[Dict[str, Any]]:
        """Read a committed item outside any unit of work.

        Returns:
            The item, or None when it does not exist
        """


class UnitOfWork(ABC):
    """Atomic commit/abort boundary around staged writes.

    Subclasses implement ``_read`` (consistent read inside the transaction)
    and ``_apply`` (atomic application of every staged write).
    """

    max_writes: Optional[int] = None

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._writes: List[WriteOperation] = []
        self._state = UnitOfWorkState.OPEN

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def state(self) -> UnitOfWorkState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == UnitOfWorkState.OPEN

    @property
    def writes(self) -> Tuple[WriteOperation, ...]:
        return tuple(self._writes)

    def _ensure_open(self) -> None:
        if not self.is_open:
            raise TransactionError(
                f"Unit of work is {self._state.value}; no further work can be staged"
            )

    def _stage(self, operation: WriteOperation) -> None:
        self._ensure_open()
        if self.max_writes is not None and len(self._writes) >= self.max_writes:
            raise ValidationError(
                f"Unit of work cannot stage more than {self.max_writes} writes"
            )
        self._validate_staged(operation)
        self._writes.append(operation)

    def _validate_staged(self, operation: WriteOperation) -> None:
        """Hook for backend-specific staging rules."""

    def get(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Consistent read of an item from within the unit of work.

        Staged writes are not visible to reads; they are applied at commit.
        """
        self._ensure_open()
        self._store.key_value(table, key)
        return self._read(table, key)

    def put(
        self,
        table: str,
        item: Dict[str, Any],
        *,
        if_absent: bool = False,
        expiry_attribute: Optional[str] = None,
        condition_kind: ErrorKind = ErrorKind.CONFLICT,
    ) -> None:
        """Stage a full-item write.

        Args:
            table: Logical table name
            item: Item including its key attribute
            if_absent: Fail at commit when a live item already exists
            expiry_attribute: Epoch-seconds attribute that makes an existing
                item count as absent once it is in the past
            condition_kind: Error kind raised when ``if_absent`` fails
        """
        key_attribute = self._store.key_attribute(table)
        key = {key_attribute: self._store.key_value(table, item)}
        self._stage(
            WriteOperation(
                kind=WriteKind.PUT,
                table=table,
                key=key,
                item=dict(item),
                if_absent=if_absent,
                expiry_attribute=expiry_attribute,
                condition_kind=condition_kind,
            )
        )

    def update(
        self,
        table: str,
        key: Dict[str, Any],
        set_fields: Optional[Dict[str, Any]] = None,
        add_to_set: Optional[Dict[str, Iterable[Any]]] = None,
        remove_from_set: Optional[Dict[str, Iterable[Any]]] = None,
        must_exist: bool = True,
    ) -> None:
        """Stage a partial update.

        Args:
            table: Logical table name
            key: Primary key of the item
            set_fields: Attributes to assign
            add_to_set: Values to add to set attributes
            remove_from_set: Values to remove from set attributes
            must_exist: Fail at commit with NotFoundError when the item is
                missing; otherwise the update creates it
        """
        additions = {k: list(v) for k, v in (add_to_set or {}).items()}
        removals = {k: list(v) for k, v in (remove_from_set or {}).items()}
        additions = {k: v for k, v in additions.items() if v}
        removals = {k: v for k, v in removals.items() if v}
        if not (set_fields or additions or removals):
            raise ValidationError(f"Empty update for table '{table}'")

        key_attribute = self._store.key_attribute(table)
        if key_attribute in (set_fields or {}):
            raise ValidationError(
                f"Key attribute '{key_attribute}' cannot be updated"
            )

        self._stage(
            WriteOperation(
                kind=WriteKind.UPDATE,
                table=table,
                key={key_attribute: self._store.key_value(table, key)},
                set_fields=dict(set_fields or {}),
                add_to_set=additions,
                remove_from_set=removals,
                must_exist=must_exist,
                condition_kind=ErrorKind.NOT_FOUND,
            )
        )

    def delete(
        self, table: str, key: Dict[str, Any], must_exist: bool = False
    ) -> None:
        """Stage a delete; with ``must_exist`` a missing item fails the commit."""
        key_attribute = self._store.key_attribute(table)
        self._stage(
            WriteOperation(
                kind=WriteKind.DELETE,
                table=table,
                key={key_attribute: self._store.key_value(table, key)},
                must_exist=must_exist,
                condition_kind=ErrorKind.NOT_FOUND,
            )
        )

    def commit(self) -> None:
        """Apply every staged write atomically.

        Raises:
            TransactionConflictError: Write conflict with a concurrent unit of work
            DuplicateKeyError: The idempotency record condition failed
            ConflictError / NotFoundError: A business condition failed
            TransactionError: Any other transactional failure
        """
        self._ensure_open()
        writes = list(self._writes)
        try:
            self._apply(writes)
        except Exception as exc:
            self._state = UnitOfWorkState.ABORTED
            self._writes.clear()
            error = classify_exception(exc)
            logger.info(
                "unit_of_work_commit_failed",
                writes=len(writes),
                error_kind=error.kind.value,
                classification=error.classification.value,
                error=error.message,
            )
            if error is exc:
                raise
            raise error from exc

        self._state = UnitOfWorkState.COMMITTED
        self._writes.clear()
        logger.debug("unit_of_work_committed", writes=len(writes))

    def abort(self) -> None:
        """Discard every staged write. Never raises."""
        if not self.is_open:
            return
        discarded = len(self._writes)
        try:
            self._discard()
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("unit_of_work_abort_failed", error=str(exc))
        finally:
            self._state = UnitOfWorkState.ABORTED
            self._writes.clear()
        logger.debug("unit_of_work_aborted", discarded_writes=discarded)

    def run(self, body: Callable[["UnitOfWork"], T]) -> T:
        """Run ``body`` inside the unit of work and commit.

        Any exception raised by the body aborts the unit of work and is
        re-raised as a ClassifiedError.
        """
        try:
            result = body(self)
        except Exception as exc:
            self.abort()
            error = classify_exception(exc)
            if error is exc:
                raise
            raise error from exc
        self.commit()
        return result

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        if exc_type is not None:
            self.abort()
            return False
        if self.is_open:
            self.commit()
        return False

    @abstractmethod
    def _read(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Backend read inside the transaction."""

    @abstractmethod
    def _apply(self, writes: List[WriteOperation]) -> None:
        """Backend atomic application of the staged writes."""

    def _discard(self) -> None:
        """Backend hook to release resources on abort."""


def first_condition_failure(
    failures: List[Tuple[int, ErrorKind]],
) -> Optional[Tuple[int, ErrorKind]]:
    """Pick the condition failure to report for a cancelled commit.

    A failed idempotency record condition wins over every other failure.
    """
    for failure in failures:
        if failure[1] == ErrorKind.DUPLICATE_KEY:
            return failure
    return failures[0] if failures else None


__all__ = [
    "DocumentStore",
    "UnitOfWork",
    "UnitOfWorkState",
    "WriteKind",
    "WriteOperation",
    "first_condition_failure",
    "DEFAULT_KEY_ATTRIBUTE",
]
