"""DynamoDB document store.

Units of work are committed with a single ``TransactWriteItems`` call. Each
staged write becomes one transaction item; conditions are expressed as
condition expressions and a failed transaction is classified from its
positional ``CancellationReasons``.

Every unit of work carries its own ``ClientRequestToken`` so botocore's
internal retries of the same commit are idempotent on the service side. The
token is also stamped on every written item as its revision, which is what
reads inside a later unit of work are guarded on.
"""

import time
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer  # type: ignore
from botocore.client import BaseClient  # type: ignore
from botocore.exceptions import BotoCoreError, ClientError  # type: ignore

from infrastructure.clients.aws.session_provider import SessionProvider
from infrastructure.operations.classifiers import classify_dynamodb_error
from infrastructure.operations.errors import (
    ErrorKind,
    StorageUnavailableError,
    ValidationError,
)
from infrastructure.persistence.unit_of_work import (
    DocumentStore,
    UnitOfWork,
    WriteKind,
    WriteOperation,
)

logger = structlog.get_logger()

# DynamoDB rejects transactions with more items than this.
MAX_TRANSACTION_ITEMS = 100

# Stamped on every item written through a unit of work; reads inside a unit
# of work are guarded on it at commit.
REVISION_ATTRIBUTE = "_revision"

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def _to_dynamodb_value(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamodb_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_dynamodb_value(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return {_to_dynamodb_value(v) for v in value}
    return value


def _from_dynamodb_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamodb_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamodb_value(v) for v in value]
    if isinstance(value, set):
        return {_from_dynamodb_value(v) for v in value}
    return value


def serialize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a plain item to DynamoDB attribute values."""
    return {k: _serializer.serialize(_to_dynamodb_value(v)) for k, v in item.items()}


def serialize_value(value: Any) -> Dict[str, Any]:
    return _serializer.serialize(_to_dynamodb_value(value))


def deserialize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Convert DynamoDB attribute values to a plain item."""
    return {k: _from_dynamodb_value(_deserializer.deserialize(v)) for k, v in item.items()}


class _Expression:
    """Accumulates placeholder names and values for one transaction item."""

    def __init__(self) -> None:
        self.names: Dict[str, str] = {}
        self.values: Dict[str, Any] = {}

    def name(self, attribute: str, prefix: str) -> str:
        placeholder = f"#{prefix}{len(self.names)}"
        self.names[placeholder] = attribute
        return placeholder

    def value(self, value: Any, prefix: str) -> str:
        placeholder = f":{prefix}{len(self.values)}"
        self.values[placeholder] = serialize_value(value)
        return placeholder

    def apply(self, request: Dict[str, Any]) -> Dict[str, Any]:
        if self.names:
            request["ExpressionAttributeNames"] = self.names
        if self.values:
            request["ExpressionAttributeValues"] = self.values
        return request


@dataclass(frozen=True)
class ReadGuard:
    """What a unit of work saw when it read an item.

    Attributes:
        exists: The item existed at read time
        revision: Its revision attribute, None when it was never stamped
    """

    exists: bool
    revision: Optional[str] = None


def _guard_condition(
    guard: ReadGuard, key_attribute: str, expression: _Expression
) -> str:
    if not guard.exists:
        return f"attribute_not_exists({expression.name(key_attribute, 'rpk')})"
    revision = expression.name(REVISION_ATTRIBUTE, "rev")
    if guard.revision is None:
        return (
            f"attribute_exists({expression.name(key_attribute, 'rpk')}) "
            f"AND attribute_not_exists({revision})"
        )
    return f"{revision} = {expression.value(guard.revision, 'rev')}"


def build_condition_check(
    table: str, key: Dict[str, Any], key_attribute: str, guard: ReadGuard
) -> Dict[str, Any]:
    """Build a ``ConditionCheck`` entry asserting an item is unchanged since read."""
    expression = _Expression()
    request = {
        "TableName": table,
        "Key": serialize_item(key),
        "ConditionExpression": _guard_condition(guard, key_attribute, expression),
    }
    return {"ConditionCheck": expression.apply(request)}


def build_transact_item(
    write: WriteOperation,
    key_attribute: str,
    now: float,
    revision: Optional[str] = None,
    guard: Optional[ReadGuard] = None,
) -> Dict[str, Any]:
    """Translate a staged write into a ``TransactItems`` entry.

    Args:
        write: Staged write
        key_attribute: Partition key attribute of the write's table
        now: Current epoch seconds, compared against the expiry attribute
        revision: Revision stamped on the written item
        guard: Read state the item must still be in for the write to apply

    Returns:
        Dict with a single ``Put``, ``Update`` or ``Delete`` member
    """
    expression = _Expression()
    condition: Optional[str] = None

    if write.if_absent:
        condition = f"attribute_not_exists({expression.name(key_attribute, 'pk')})"
        if write.expiry_attribute:
            expiry = expression.name(write.expiry_attribute, "exp")
            condition = f"{condition} OR {expiry} < {expression.value(int(now), 'now')}"
    elif write.must_exist:
        condition = f"attribute_exists({expression.name(key_attribute, 'pk')})"

    if guard is not None:
        guarded = _guard_condition(guard, key_attribute, expression)
        condition = f"({condition}) AND ({guarded})" if condition else guarded

    if write.kind == WriteKind.PUT:
        item = dict(write.item or {})
        if revision is not None:
            item[REVISION_ATTRIBUTE] = revision
        request: Dict[str, Any] = {
            "TableName": write.table,
            "Item": serialize_item(item),
        }
        member = "Put"
    elif write.kind == WriteKind.DELETE:
        request = {"TableName": write.table, "Key": serialize_item(write.key)}
        member = "Delete"
    else:
        clauses = []
        set_fields = dict(write.set_fields)
        if revision is not None:
            set_fields[REVISION_ATTRIBUTE] = revision
        if set_fields:
            assignments = [
                f"{expression.name(attribute, 'f')} = {expression.value(value, 'v')}"
                for attribute, value in set_fields.items()
            ]
            clauses.append("SET " + ", ".join(assignments))
        if write.add_to_set:
            additions = [
                f"{expression.name(attribute, 'f')} {expression.value(set(values), 'v')}"
                for attribute, values in write.add_to_set.items()
            ]
            clauses.append("ADD " + ", ".join(additions))
        if write.remove_from_set:
            removals = [
                f"{expression.name(attribute, 'f')} {expression.value(set(values), 'v')}"
                for attribute, values in write.remove_from_set.items()
            ]
            clauses.append("DELETE " + ", ".join(removals))
        request = {
            "TableName": write.table,
            "Key": serialize_item(write.key),
            "UpdateExpression": " ".join(clauses),
        }
        member = "Update"

    if condition:
        request["ConditionExpression"] = condition
    return {member: expression.apply(request)}


class DynamoDBDocumentStore(DocumentStore):
    """Document store backed by DynamoDB transactions.

    Args:
        client: Optional pre-built boto3 DynamoDB client
        session_provider: Used to create the client lazily when none is given
        key_schema: Optional table -> partition key attribute mapping
        clock: Returns the current epoch time; used for expiry conditions
    """

    def __init__(
        self,
        client: Optional[BaseClient] = None,
        session_provider: Optional[SessionProvider] = None,
        key_schema: Optional[Dict[str, str]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if client is None and session_provider is None:
            raise ValueError("Either client or session_provider is required")
        super().__init__(key_schema)
        self._client = client
        self._session_provider = session_provider
        self._clock = clock

    @property
    def client(self) -> BaseClient:
        if self._client is None:
            self._client = self._session_provider.get_boto3_client("dynamodb")
        return self._client

    def now(self) -> float:
        return self._clock()

    def begin(self) -> "DynamoDBUnitOfWork":
        try:
            client = self.client
        except (BotoCoreError, ClientError, ValueError) as exc:
            logger.warning("dynamodb_client_unavailable", error=str(exc))
            raise StorageUnavailableError(
                f"Could not create DynamoDB client: {exc}",
                error_code=type(exc).__name__,
            ) from exc
        return DynamoDBUnitOfWork(self, client)

    def get_item(
        self, table: str, key: Dict[str, Any], consistent: bool = True
    ) -> Optional[Dict[str, Any]]:
        item = self.read_stamped(table, key, consistent=consistent)
        if item is not None:
            item.pop(REVISION_ATTRIBUTE, None)
        return item

    def read_stamped(
        self, table: str, key: Dict[str, Any], consistent: bool = True
    ) -> Optional[Dict[str, Any]]:
        """Read an item including its revision attribute."""
        key_attribute = self.key_attribute(table)
        request_key = {key_attribute: self.key_value(table, key)}
        try:
            response = self.client.get_item(
                TableName=table,
                Key=serialize_item(request_key),
                ConsistentRead=consistent,
            )
        except (BotoCoreError, ClientError) as exc:
            error = classify_dynamodb_error(exc)
            logger.warning(
                "dynamodb_get_item_failed",
                table=table,
                error_kind=error.kind.value,
                error=error.message,
            )
            raise error from exc

        item = response.get("Item")
        if not item:
            return None
        return deserialize_item(item)


class DynamoDBUnitOfWork(UnitOfWork):
    """Unit of work committed with one ``TransactWriteItems`` call.

    Items read through ``get`` are guarded at commit: a written item carries
    the guard in its own condition, an item only read gets a
    ``ConditionCheck``. A guard failure means another commit changed the item
    since it was read and surfaces as TransactionConflictError.
    """

    max_writes = MAX_TRANSACTION_ITEMS

    def __init__(self, store: DynamoDBDocumentStore, client: BaseClient) -> None:
        super().__init__(store)
        self._dynamodb_store = store
        self._client = client
        self._read_set: Dict[Tuple[str, Any], ReadGuard] = {}
        self.request_token = str(uuid.uuid4())

    def _validate_staged(self, operation: WriteOperation) -> None:
        for staged in self._writes:
            if staged.table == operation.table and staged.key == operation.key:
                raise ValidationError(
                    f"Item {operation.key} in '{operation.table}' is already "
                    "staged in this transaction"
                )

    def _read(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        item = self._dynamodb_store.read_stamped(table, key, consistent=True)
        ref = (table, self._store.key_value(table, key))
        if item is None:
            self._read_set.setdefault(ref, ReadGuard(exists=False))
            return None
        revision = item.pop(REVISION_ATTRIBUTE, None)
        self._read_set.setdefault(ref, ReadGuard(exists=True, revision=revision))
        return item

    def _apply(self, writes: List[WriteOperation]) -> None:
        if not writes:
            return
        now = self._dynamodb_store.now()
        transact_items: List[Dict[str, Any]] = []
        condition_kinds: List[ErrorKind] = []
        written = set()

        for write in writes:
            ref = (write.table, self._store.key_value(write.table, write.key))
            written.add(ref)
            guard = self._read_set.get(ref)
            transact_items.append(
                build_transact_item(
                    write,
                    self._store.key_attribute(write.table),
                    now,
                    revision=self.request_token,
                    guard=guard,
                )
            )
            if guard is None or write.condition_kind == ErrorKind.DUPLICATE_KEY:
                condition_kinds.append(write.condition_kind)
            else:
                condition_kinds.append(ErrorKind.TRANSACTION_CONFLICT)

        for (table, key_value), guard in self._read_set.items():
            if (table, key_value) in written:
                continue
            key_attribute = self._store.key_attribute(table)
            transact_items.append(
                build_condition_check(
                    table, {key_attribute: key_value}, key_attribute, guard
                )
            )
            condition_kinds.append(ErrorKind.TRANSACTION_CONFLICT)

        if len(transact_items) > MAX_TRANSACTION_ITEMS:
            raise ValidationError(
                f"Transaction needs {len(transact_items)} items including read "
                f"checks; the limit is {MAX_TRANSACTION_ITEMS}"
            )

        try:
            self._client.transact_write_items(
                TransactItems=transact_items,
                ClientRequestToken=self.request_token,
            )
        except (BotoCoreError, ClientError) as exc:
            raise classify_dynamodb_error(exc, condition_kinds) from exc
        logger.debug(
            "dynamodb_transaction_committed",
            items=len(transact_items),
            read_checks=len(transact_items) - len(writes),
            request_token=self.request_token,
        )

    def _discard(self) -> None:
        self._read_set.clear()


__all__ = [
    "DynamoDBDocumentStore",
    "DynamoDBUnitOfWork",
    "MAX_TRANSACTION_ITEMS",
    "REVISION_ATTRIBUTE",
    "ReadGuard",
    "build_condition_check",
    "build_transact_item",
    "serialize_item",
    "deserialize_item",
]
