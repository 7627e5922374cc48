"""Idempotent operation executor.

Runs a business operation exactly once per idempotency key:

1. Reject empty, blank or over-long keys (InvalidKeyError, no retry).
2. Consult the ledger; a hit returns the stored response unchanged.
3. Open a unit of work, run the operation, stage the ledger record, commit.
4. On failure, classify: a duplicate key degrades to a ledger lookup,
   transient errors back off and retry, anything else is returned as the
   terminal error.

The ledger is consulted again before every retry, so a commit whose outcome
was lost on the wire is replayed instead of executed a second time. The
backoff sleep is the only suspension point and is injectable.

Usage:
    from infrastructure.services import get_operation_executor

    executor = get_operation_executor()

    def create_listing(uow):
        uow.put("listings", {"id": listing_id, **payload}, if_absent=True)
        return {"listing_id": listing_id}

    result = executor.execute(request.headers["Idempotency-Key"], create_listing)
    if result.is_success:
        return result.data.body
"""

import random
import time
from typing import Any, Callable, Optional

import structlog

from infrastructure.idempotency.ledger import IdempotencyLedger
from infrastructure.idempotency.models import StoredResponse
from infrastructure.logging.context import bind_operation_context
from infrastructure.operations.classifiers import classify_exception
from infrastructure.operations.errors import (
    ClassifiedError,
    ErrorKind,
    InvalidKeyError,
    TransactionConflictError,
)
from infrastructure.operations.result import OperationResult
from infrastructure.persistence.unit_of_work import DocumentStore, UnitOfWork
from infrastructure.resilience.backoff import BackoffPolicy

logger = structlog.get_logger()

Operation = Callable[[UnitOfWork], Any]

DEFAULT_KEY_MAX_LENGTH = 255


class OperationExecutor:
    """Executes operations inside units of work with idempotent retries.

    Args:
        store: Document store that opens units of work
        ledger: Idempotency ledger kept in the same store
        policy: Default backoff policy (exponential defaults when omitted)
        classifier: Maps any exception to a ClassifiedError
        sleep: Suspension used between attempts
        rng: Random source for jittered delays
        key_max_length: Longest accepted idempotency key
    """

    def __init__(
        self,
        store: DocumentStore,
        ledger: IdempotencyLedger,
        policy: Optional[BackoffPolicy] = None,
        classifier: Callable[[BaseException], ClassifiedError] = classify_exception,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
        key_max_length: int = DEFAULT_KEY_MAX_LENGTH,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.policy = policy or BackoffPolicy.exponential()
        self._classifier = classifier
        self._sleep = sleep
        self._rng = rng
        self.key_max_length = key_max_length

    def validate_key(self, key: Any) -> str:
        """Validate an idempotency key.

        Raises:
            InvalidKeyError: If the key is missing, blank or too long
        """
        if not isinstance(key, str) or not key.strip():
            raise InvalidKeyError(
                "Idempotency key is required", error_code="MISSING_IDEMPOTENCY_KEY"
            )
        if len(key) > self.key_max_length:
            raise InvalidKeyError(
                f"Idempotency key exceeds {self.key_max_length} characters",
                error_code="IDEMPOTENCY_KEY_TOO_LONG",
            )
        return key

    def execute(
        self,
        key: Any,
        operation: Operation,
        policy: Optional[BackoffPolicy] = None,
        status_code: int = 200,
        operation_name: Optional[str] = None,
    ) -> OperationResult:
        """Execute an operation at most once for its idempotency key.

        Args:
            key: Client-supplied idempotency key
            operation: Callable receiving the open unit of work; its
                JSON-compatible return value becomes the stored response body
            policy: Backoff policy for this call (executor default when omitted)
            status_code: Status stored with a successful response
            operation_name: Name bound to the logging context

        Returns:
            OperationResult whose data is the StoredResponse on success, or
            whose error is the terminal ClassifiedError, unchanged
        """
        name = operation_name or getattr(operation, "__name__", "operation")
        try:
            self.validate_key(key)
        except InvalidKeyError as error:
            logger.warning(
                "operation_rejected_invalid_key",
                operation=name,
                error=error.message,
            )
            return OperationResult.failure(error, attempts=0)

        with bind_operation_context(idempotency_key=key, operation=name):
            return self._execute(key, operation, policy or self.policy, status_code)

    def _execute(
        self,
        key: str,
        operation: Operation,
        policy: BackoffPolicy,
        status_code: int,
    ) -> OperationResult:
        attempt = 1
        while True:
            try:
                stored = self.ledger.lookup(key)
                if stored is not None:
                    return self._replayed(stored, attempts=attempt - 1)
                response = self._attempt(key, operation, status_code)
            except Exception as exc:  # pylint: disable=broad-except
                error = self._classifier(exc)
            else:
                logger.info("operation_committed", attempts=attempt)
                return OperationResult.success(
                    data=response, message="committed", attempts=attempt
                )

            if error.kind == ErrorKind.DUPLICATE_KEY:
                try:
                    winner = self.ledger.lookup(key)
                except Exception as exc:  # pylint: disable=broad-except
                    error = self._classifier(exc)
                else:
                    if winner is not None:
                        logger.info("operation_duplicate_resolved", attempts=attempt)
                        return self._replayed(winner, attempts=attempt)
                    # The winning record expired or vanished between the
                    # failed commit and this read; try again.
                    error = TransactionConflictError(
                        "Duplicate idempotency key reported but no live record found",
                        error_code="DUPLICATE_KEY_UNRESOLVED",
                    )

            if not policy.should_retry(attempt, error.classification):
                logger.warning(
                    "operation_failed",
                    attempts=attempt,
                    error_kind=error.kind.value,
                    classification=error.classification.value,
                    error=error.message,
                )
                return OperationResult.failure(error, attempts=attempt)

            delay = policy.delay(attempt, rng=self._rng)
            logger.info(
                "operation_retry_scheduled",
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay_seconds=delay,
                error_kind=error.kind.value,
                error=error.message,
            )
            self._sleep(delay)
            attempt += 1

    def _attempt(self, key: str, operation: Operation, status_code: int) -> StoredResponse:
        uow = self.store.begin()

        def body(uow: UnitOfWork) -> StoredResponse:
            result = operation(uow)
            response = StoredResponse.from_result(result, status_code=status_code)
            self.ledger.record(key, response, uow)
            return response

        return uow.run(body)

    def _replayed(self, stored: StoredResponse, attempts: int) -> OperationResult:
        logger.info("operation_replayed", status_code=stored.status_code)
        return OperationResult.success(
            data=stored, message="replayed", attempts=attempts, replayed=True
        )
