"""Infrastructure modules for the idempotent write path.

Centralized infrastructure components:
- configuration: Settings management (Settings, RetrySettings, IdempotencySettings)
- clients: boto3 client and session creation
- logging: Structured logging (configure_logging, get_module_logger)
- operations: Operation results, classified errors and failure classification
- persistence: Document stores and transactional units of work
- idempotency: Idempotency ledger and key builder
- resilience: Backoff policy and the idempotent operation executor
- services: Application-scoped providers (get_settings, get_operation_executor)
"""

# Operations
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

__all__ = [
    "OperationResult",
    "OperationStatus",
]
