"""Failure classifiers for store and network exceptions.

Converts raw exceptions (botocore/DynamoDB errors, builtin network errors,
anything else) into ``ClassifiedError`` instances so the executor and the
backoff policy can decide on retries from the classification alone.

Key Functions:
- classify_exception(): any exception → ClassifiedError (unknown fails closed)
- classify_dynamodb_error(): botocore/DynamoDB errors → ClassifiedError
- classify_cancellation_reasons(): TransactionCanceledException reasons → ClassifiedError

Usage:
    from infrastructure.operations.classifiers import classify_exception

    try:
        client.transact_write_items(TransactItems=items)
    except Exception as exc:
        raise classify_exception(exc) from exc
"""

from typing import Any, Dict, List, Optional, Sequence

from botocore.exceptions import (  # type: ignore
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
    NoCredentialsError,
    NoRegionError,
    ParamValidationError,
)

from infrastructure.operations.errors import (
    ClassifiedError,
    ConflictError,
    ErrorClass,
    ErrorKind,
    StorageError,
    TransactionConflictError,
    TransactionError,
    UnauthorizedError,
    UnknownError,
    ValidationError,
    error_for_kind,
)

TRANSIENT_ERROR_CODES = frozenset(
    {
        "ThrottlingException",
        "Throttling",
        "RequestLimitExceeded",
        "ProvisionedThroughputExceededException",
        "InternalServerError",
        "ServiceUnavailable",
        "RequestTimeout",
        "RequestTimeoutException",
    }
)

CONFLICT_ERROR_CODES = frozenset(
    {
        "TransactionConflictException",
        "TransactionInProgressException",
    }
)

VALIDATION_ERROR_CODES = frozenset(
    {
        "ValidationException",
        "SerializationException",
        "IdempotentParameterMismatchException",
    }
)

AUTH_ERROR_CODES = frozenset(
    {
        "AccessDeniedException",
        "UnrecognizedClientException",
        "InvalidSignatureException",
        "ExpiredTokenException",
        "MissingAuthenticationTokenException",
    }
)

_THROTTLED_REASONS = frozenset(
    {"ThrottlingError", "ProvisionedThroughputExceeded", "RequestLimitExceeded"}
)


def _client_error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "Unknown")


def _client_error_message(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Message", str(exc))


def classify_cancellation_reasons(
    reasons: List[Dict[str, Any]],
    condition_kinds: Sequence[ErrorKind],
) -> ClassifiedError:
    """Classify the cancellation reasons of a DynamoDB transaction.

    Reasons are positional: reason ``i`` belongs to staged item ``i``. A failed
    condition on the idempotency ledger item wins over every other reason so
    that a lost race always degrades to a ledger lookup.

    Args:
        reasons: ``CancellationReasons`` list from the error response
        condition_kinds: ErrorKind to raise when item ``i`` fails its condition

    Returns:
        ClassifiedError describing the cancellation
    """
    codes = [reason.get("Code", "None") for reason in reasons]

    failed_conditions = [
        (index, reasons[index])
        for index, code in enumerate(codes)
        if code == "ConditionalCheckFailed"
    ]
    for index, reason in failed_conditions:
        kind = condition_kinds[index] if index < len(condition_kinds) else ErrorKind.CONFLICT
        if kind == ErrorKind.DUPLICATE_KEY:
            return error_for_kind(
                kind,
                "Idempotency record already exists",
                error_code="ConditionalCheckFailed",
            )
    if failed_conditions:
        index, reason = failed_conditions[0]
        kind = condition_kinds[index] if index < len(condition_kinds) else ErrorKind.CONFLICT
        return error_for_kind(
            kind,
            reason.get("Message") or "Conditional check failed",
            error_code="ConditionalCheckFailed",
        )

    if "TransactionConflict" in codes:
        return TransactionConflictError(
            "Transaction conflicted with a concurrent write",
            error_code="TransactionConflict",
        )

    throttled = [code for code in codes if code in _THROTTLED_REASONS]
    if throttled:
        return StorageError("Transaction throttled by the store", error_code=throttled[0])

    if "ValidationError" in codes:
        return ValidationError(
            "Transaction rejected by store validation", error_code="ValidationError"
        )

    meaningful = [code for code in codes if code != "None"]
    return TransactionError(
        f"Transaction cancelled: {', '.join(meaningful) or 'no reason given'}",
        error_code=meaningful[0] if meaningful else "TransactionCanceledException",
    )


def classify_dynamodb_error(
    exc: Exception,
    condition_kinds: Optional[Sequence[ErrorKind]] = None,
) -> ClassifiedError:
    """Classify botocore/DynamoDB errors.

    Error Code Mapping:
    - TransactionCanceledException: per-item cancellation reasons
    - ConditionalCheckFailedException: ConflictError
    - ResourceNotFoundException: StorageError (permanent, table is missing)
    - TransactionConflict/InProgress: TransactionConflictError (transient)
    - Throttling/5xx codes: StorageError (transient)
    - Validation codes: ValidationError
    - Auth codes: UnauthorizedError
    - Connection/read timeouts: StorageError (transient)
    - Other: UnknownError (permanent, fail closed)

    Args:
        exc: Exception raised by boto3/botocore
        condition_kinds: ErrorKind per staged item, for transaction cancellations

    Returns:
        ClassifiedError with the matching kind and classification
    """
    if isinstance(exc, ClientError):
        code = _client_error_code(exc)
        message = _client_error_message(exc)

        if code == "TransactionCanceledException":
            reasons = exc.response.get("CancellationReasons") or []
            return classify_cancellation_reasons(reasons, condition_kinds or [])

        if code == "ConditionalCheckFailedException":
            return ConflictError(message, error_code=code)

        if code == "ResourceNotFoundException":
            # The table is missing; retrying cannot help.
            return StorageError(
                message, classification=ErrorClass.PERMANENT, error_code=code
            )

        if code in CONFLICT_ERROR_CODES:
            return TransactionConflictError(message, error_code=code)

        if code in TRANSIENT_ERROR_CODES:
            return StorageError(message, error_code=code)

        if code in VALIDATION_ERROR_CODES:
            return ValidationError(message, error_code=code)

        if code in AUTH_ERROR_CODES:
            return UnauthorizedError(message, error_code=code)

        status_code = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if status_code and 500 <= int(status_code) < 600:
            return StorageError(message, error_code=code)

        return UnknownError(f"DynamoDB client error: {code}: {message}", error_code=code)

    if isinstance(exc, (BotoConnectionError, HTTPClientError)):
        return StorageError(
            f"Store connection error: {type(exc).__name__}: {exc}",
            error_code="CONNECTION_ERROR",
        )

    if isinstance(exc, NoCredentialsError):
        return UnauthorizedError("Store credentials not found", error_code="NO_CREDENTIALS")

    if isinstance(exc, NoRegionError):
        return StorageError(
            "Store client has no region configured",
            classification=ErrorClass.PERMANENT,
            error_code="NO_REGION",
        )

    if isinstance(exc, ParamValidationError):
        return ValidationError(str(exc), error_code="PARAM_VALIDATION")

    if isinstance(exc, BotoCoreError):
        return UnknownError(f"Store client error: {exc}", error_code=type(exc).__name__)

    return classify_exception(exc)


def classify_exception(exc: BaseException) -> ClassifiedError:
    """Classify any exception raised by an operation or the store.

    ClassifiedError instances pass through unchanged. Builtin timeouts and
    connection errors are transient. Everything unrecognised is permanent so
    unknown failure modes are never retried.

    Args:
        exc: Exception to classify

    Returns:
        ClassifiedError
    """
    if isinstance(exc, ClassifiedError):
        return exc

    if isinstance(exc, (ClientError, BotoCoreError)):
        return classify_dynamodb_error(exc)

    if isinstance(exc, (TimeoutError, ConnectionError)):
        return StorageError(
            f"Network error: {type(exc).__name__}: {exc}",
            error_code="NETWORK_ERROR",
        )

    return UnknownError(
        f"Unclassified error: {type(exc).__name__}: {exc}",
        error_code="UNKNOWN_ERROR",
    )
