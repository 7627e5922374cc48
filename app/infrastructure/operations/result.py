"""Operation result dataclass.

Uniform result returned by the operation executor: the stored response on
success, or the terminal classified error on failure.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from infrastructure.operations.errors import ClassifiedError
from infrastructure.operations.status import OperationStatus


@dataclass
class OperationResult:
    """Uniform result returned from executed operations.

    Attributes:
        status: OperationStatus -- high-level outcome
        message: str -- human-friendly message for logs/troubleshooting
        data: Optional[Any] -- payload on success (a StoredResponse for executor results)
        error: Optional[ClassifiedError] -- terminal error on failure, unchanged
        error_code: Optional[str] -- optional machine error code
        attempts: int -- number of attempts made (0 for replays and invalid keys)
        replayed: bool -- True when the response came from the idempotency ledger
    """

    status: OperationStatus
    message: str
    data: Optional[Any] = None
    error: Optional[ClassifiedError] = None
    error_code: Optional[str] = None
    attempts: int = 0
    replayed: bool = False

    @property
    def is_success(self) -> bool:
        """Helper property to check if operation was successful.

        Returns:
            True if status is SUCCESS, False otherwise
        """
        return self.status == OperationStatus.SUCCESS

    @property
    def http_status(self) -> int:
        """HTTP status a request handler should answer with.

        Successful results answer with the stored response status code (200
        when the payload carries none); failures follow the error kind.
        """
        if self.error is not None:
            return self.error.http_status
        return getattr(self.data, "status_code", 200)

    @classmethod
    def success(
        cls,
        data: Optional[Any] = None,
        message: str = "ok",
        attempts: int = 0,
        replayed: bool = False,
    ) -> "OperationResult":
        """Create a SUCCESS OperationResult with optional data.

        Args:
            data: Optional payload to include with the result
            message: Human-friendly success message
            attempts: Number of attempts the execution took
            replayed: Whether the payload was served from the ledger

        Returns:
            OperationResult with SUCCESS status
        """
        return cls(
            status=OperationStatus.SUCCESS,
            message=message,
            data=data,
            attempts=attempts,
            replayed=replayed,
        )

    @classmethod
    def failure(cls, error: ClassifiedError, attempts: int = 0) -> "OperationResult":
        """Create a failed OperationResult from a classified error.

        Args:
            error: Terminal error, kept unchanged for the caller
            attempts: Number of attempts made before giving up

        Returns:
            OperationResult whose status is derived from the error
        """
        return cls(
            status=OperationStatus.for_error(error),
            message=error.message,
            error=error,
            error_code=error.error_code or error.kind.value,
            attempts=attempts,
        )

    def unwrap(self) -> Any:
        """Return the payload or raise the terminal error."""
        if self.error is not None:
            raise self.error
        return self.data

    def to_response(self) -> Dict[str, Any]:
        """Render the result as an event handler response.

        Successful results carry the stored response body; failures carry the
        classified error.
        """
        if self.error is not None:
            body: Any = {"error": self.error.to_dict()}
        else:
            body = getattr(self.data, "body", self.data)
        return {
            "statusCode": self.http_status,
            "body": body,
            "replayed": self.replayed,
        }
