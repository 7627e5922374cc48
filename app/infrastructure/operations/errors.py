"""Classified error family for store-backed operations.

Every failure that crosses the persistence or executor boundary is a
``ClassifiedError``. The error carries a closed ``ErrorKind`` tag and a
``Transient`` / ``Permanent`` classification that the backoff policy reads
directly, so callers never need ``isinstance`` checks to decide on retries.

Named subclasses exist only as raising conveniences; each one pins its kind.

Usage:
    from infrastructure.operations.errors import NotFoundError

    def operation(uow):
        listing = uow.get("listings", {"id": listing_id})
        if listing is None:
            raise NotFoundError(f"No listing found for id: {listing_id}")
        ...
"""

from enum import Enum
from typing import Dict, Optional


class ErrorClass(Enum):
    """Retry classification of an error.

    Attributes:
        TRANSIENT: Safe to retry (infrastructure hiccup, write contention)
        PERMANENT: Retrying can never succeed (bad input, business conflict)
    """

    TRANSIENT = "transient"
    PERMANENT = "permanent"


class ErrorKind(Enum):
    """Closed set of failure kinds understood by the executor."""

    INVALID_KEY = "invalid_key"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    TRANSACTION_CONFLICT = "transaction_conflict"
    TRANSACTION = "transaction"
    DUPLICATE_KEY = "duplicate_key"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    UNKNOWN = "unknown"


_DEFAULT_CLASSIFICATION: Dict[ErrorKind, ErrorClass] = {
    ErrorKind.INVALID_KEY: ErrorClass.PERMANENT,
    ErrorKind.STORAGE_UNAVAILABLE: ErrorClass.TRANSIENT,
    ErrorKind.TRANSACTION_CONFLICT: ErrorClass.TRANSIENT,
    ErrorKind.TRANSACTION: ErrorClass.PERMANENT,
    ErrorKind.DUPLICATE_KEY: ErrorClass.PERMANENT,
    ErrorKind.VALIDATION: ErrorClass.PERMANENT,
    ErrorKind.NOT_FOUND: ErrorClass.PERMANENT,
    ErrorKind.CONFLICT: ErrorClass.PERMANENT,
    ErrorKind.UNAUTHORIZED: ErrorClass.PERMANENT,
    ErrorKind.UNKNOWN: ErrorClass.PERMANENT,
}

_HTTP_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.INVALID_KEY: 400,
    ErrorKind.STORAGE_UNAVAILABLE: 503,
    ErrorKind.TRANSACTION_CONFLICT: 503,
    ErrorKind.TRANSACTION: 500,
    ErrorKind.DUPLICATE_KEY: 409,
    ErrorKind.VALIDATION: 422,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.UNKNOWN: 500,
}


class ClassifiedError(Exception):
    """Base error carrying a kind tag and a retry classification.

    Attributes:
        message: Human-friendly description for logs and API responses
        kind: ErrorKind tag
        classification: ErrorClass (defaults from the kind, may be overridden)
        error_code: Optional machine code, usually the store's own error code
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        *,
        kind: Optional[ErrorKind] = None,
        classification: Optional[ErrorClass] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.classification = classification or _DEFAULT_CLASSIFICATION[self.kind]
        self.error_code = error_code

    @property
    def is_transient(self) -> bool:
        return self.classification == ErrorClass.TRANSIENT

    @property
    def http_status(self) -> int:
        """HTTP status a request handler should answer with."""
        if self.kind == ErrorKind.TRANSACTION and self.is_transient:
            return 503
        return _HTTP_STATUS[self.kind]

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "kind": self.kind.value,
            "classification": self.classification.value,
            "message": self.message,
            "error_code": self.error_code,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value}, "
            f"classification={self.classification.value}, message={self.message!r})"
        )


class InvalidKeyError(ClassifiedError):
    """Idempotency key is missing, blank or malformed."""

    kind = ErrorKind.INVALID_KEY


class StorageError(ClassifiedError):
    """The store could not serve a read or write."""

    kind = ErrorKind.STORAGE_UNAVAILABLE


class StorageUnavailableError(StorageError):
    """The store could not allocate a session or transaction handle."""


class TransactionConflictError(ClassifiedError):
    """Write conflict or serialization failure at commit."""

    kind = ErrorKind.TRANSACTION_CONFLICT


class TransactionError(ClassifiedError):
    """Transaction failure other than a conflict; classification follows the cause."""

    kind = ErrorKind.TRANSACTION


class DuplicateKeyError(ClassifiedError):
    """An idempotency record for the key already exists."""

    kind = ErrorKind.DUPLICATE_KEY


class ValidationError(ClassifiedError):
    kind = ErrorKind.VALIDATION


class NotFoundError(ClassifiedError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(ClassifiedError):
    kind = ErrorKind.CONFLICT


class UnauthorizedError(ClassifiedError):
    kind = ErrorKind.UNAUTHORIZED


class UnknownError(ClassifiedError):
    kind = ErrorKind.UNKNOWN


_ERROR_TYPES: Dict[ErrorKind, type] = {
    ErrorKind.INVALID_KEY: InvalidKeyError,
    ErrorKind.STORAGE_UNAVAILABLE: StorageError,
    ErrorKind.TRANSACTION_CONFLICT: TransactionConflictError,
    ErrorKind.TRANSACTION: TransactionError,
    ErrorKind.DUPLICATE_KEY: DuplicateKeyError,
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.CONFLICT: ConflictError,
    ErrorKind.UNAUTHORIZED: UnauthorizedError,
    ErrorKind.UNKNOWN: UnknownError,
}


def error_for_kind(
    kind: ErrorKind,
    message: str,
    error_code: Optional[str] = None,
) -> ClassifiedError:
    """Build the named error for a kind.

    Args:
        kind: ErrorKind to instantiate
        message: Error message
        error_code: Optional machine error code

    Returns:
        ClassifiedError subclass instance matching the kind
    """
    return _ERROR_TYPES[kind](message, error_code=error_code)
