"""
Factory functions for dependency injection.

Provides application-scoped singleton providers for core infrastructure services.
"""

from functools import lru_cache

from structlog.stdlib import BoundLogger

from infrastructure.configuration import Settings
from infrastructure.idempotency.ledger import IdempotencyLedger
from infrastructure.logging import add_app_info, configure_logging
from infrastructure.persistence.factory import create_document_store
from infrastructure.persistence.unit_of_work import DocumentStore
from infrastructure.resilience.backoff import BackoffPolicy
from infrastructure.resilience.executor import OperationExecutor

APP_NAME = "operation-executor"


@lru_cache
def get_settings() -> Settings:
    """
    Get application-scoped settings singleton.

    This is the single source of truth for settings across the entire application.
    The @lru_cache decorator ensures only ONE instance is created per process,
    even if called from multiple packages.

        from infrastructure.services.providers import get_settings
        settings = get_settings()

    Returns:
        Settings: Cached settings instance loaded from environment.
    """
    return Settings()


@lru_cache
def get_document_store() -> DocumentStore:
    """
    Get application-scoped document store singleton.

    The backend follows settings.persistence.backend (memory or dynamodb).

    Returns:
        DocumentStore: Cached store shared by the ledger and business data.
    """
    return create_document_store(get_settings())


@lru_cache
def get_idempotency_ledger() -> IdempotencyLedger:
    """
    Get application-scoped idempotency ledger singleton.

    Returns:
        IdempotencyLedger: Ledger over the shared document store, using the
        configured (prefixed) table name and TTL.
    """
    settings = get_settings()
    return IdempotencyLedger(
        store=get_document_store(),
        table_name=settings.table_name(settings.idempotency.IDEMPOTENCY_TABLE),
        ttl_seconds=settings.idempotency.IDEMPOTENCY_TTL_SECONDS,
    )


@lru_cache
def get_operation_executor() -> OperationExecutor:
    """
    Get application-scoped operation executor singleton.

    Returns:
        OperationExecutor: Executor with the default retry policy from
        settings.retry.

    Usage:
        executor = get_operation_executor()
        result = executor.execute(idempotency_key, operation)
    """
    settings = get_settings()
    return OperationExecutor(
        store=get_document_store(),
        ledger=get_idempotency_ledger(),
        policy=BackoffPolicy.from_settings(settings.retry),
        key_max_length=settings.idempotency.IDEMPOTENCY_KEY_MAX_LENGTH,
    )


@lru_cache
def initialize_application() -> BoundLogger:
    """
    Configure logging for the process and log the loaded configuration.

    Entry points call this before serving their first event; later calls
    return the same logger.

    Returns:
        BoundLogger: Logger whose entries carry the application name and
        the deployed GIT_SHA.
    """
    settings = get_settings()
    logger = configure_logging(
        log_level=settings.LOG_LEVEL,
        is_production=settings.is_production,
        extra_processors=[add_app_info(APP_NAME, settings.GIT_SHA)],
    )
    logger.info(
        "configuration_loaded",
        prefix=settings.PREFIX,
        persistence_backend=settings.persistence.backend,
        retry_strategy=settings.retry.strategy,
    )
    return logger


def reset_providers() -> None:
    """Clear every cached provider (for testing only)."""
    for provider in (
        initialize_application,
        get_settings,
        get_document_store,
        get_idempotency_ledger,
        get_operation_executor,
    ):
        provider.cache_clear()
