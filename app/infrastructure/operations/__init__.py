"""Operation result types, classified errors and failure classifiers.

This module contains the standardized result type returned by the operation
executor, the closed classified error family, and the classifiers that turn
raw store/network exceptions into classified errors.
"""

from infrastructure.operations.classifiers import (
    classify_cancellation_reasons,
    classify_dynamodb_error,
    classify_exception,
)
from infrastructure.operations.errors import (
    ClassifiedError,
    ConflictError,
    DuplicateKeyError,
    ErrorClass,
    ErrorKind,
    InvalidKeyError,
    NotFoundError,
    StorageError,
    StorageUnavailableError,
    TransactionConflictError,
    TransactionError,
    UnauthorizedError,
    UnknownError,
    ValidationError,
    error_for_kind,
)
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

__all__ = [
    "OperationResult",
    "OperationStatus",
    # Errors
    "ClassifiedError",
    "ErrorClass",
    "ErrorKind",
    "InvalidKeyError",
    "StorageError",
    "StorageUnavailableError",
    "TransactionConflictError",
    "TransactionError",
    "DuplicateKeyError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "UnauthorizedError",
    "UnknownError",
    "error_for_kind",
    # Classifiers
    "classify_exception",
    "classify_dynamodb_error",
    "classify_cancellation_reasons",
]
