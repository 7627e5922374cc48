"""Operation status enumeration.

High-level outcome of an executed operation, derived from the classified
error when the operation failed.
"""

from enum import Enum

from infrastructure.operations.errors import ClassifiedError, ErrorKind


class OperationStatus(Enum):
    """Status codes for operation results.

    Attributes:
        SUCCESS: Operation committed (or was replayed from the ledger)
        TRANSIENT_ERROR: Retryable failure that exhausted its attempts
        PERMANENT_ERROR: Non-retryable failure (validation, conflict, unknown)
        UNAUTHORIZED: Authentication or authorization failure
        NOT_FOUND: Resource not found
    """

    SUCCESS = "success"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"

    @classmethod
    def for_error(cls, error: ClassifiedError) -> "OperationStatus":
        if error.kind == ErrorKind.NOT_FOUND:
            return cls.NOT_FOUND
        if error.kind == ErrorKind.UNAUTHORIZED:
            return cls.UNAUTHORIZED
        if error.is_transient:
            return cls.TRANSIENT_ERROR
        return cls.PERMANENT_ERROR
