"""
Unit tests for dependency injection providers.

Tests cover:
- get_settings() caching behavior
- Store, ledger and executor wiring from settings
- reset_providers() clearing every cached provider
- Application startup logging configuration
"""

from unittest.mock import patch

import pytest

from infrastructure.configuration import Settings
from infrastructure.idempotency.ledger import IdempotencyLedger
from infrastructure.persistence.dynamodb import DynamoDBDocumentStore
from infrastructure.persistence.memory import InMemoryDocumentStore
from infrastructure.resilience.backoff import BackoffStrategy
from infrastructure.resilience.executor import OperationExecutor
from infrastructure.services.providers import (
    get_document_store,
    get_idempotency_ledger,
    get_operation_executor,
    get_settings,
    initialize_application,
    reset_providers,
)


@pytest.fixture(autouse=True)
def _environment(monkeypatch):
    for name in ("PREFIX", "PERSISTENCE_BACKEND", "RETRY_STRATEGY", "RETRY_MAX_ATTEMPTS", "GIT_SHA"):
        monkeypatch.delenv(name, raising=False)


class TestGetSettings:
    def test_returns_settings_instance(self):
        assert isinstance(get_settings(), Settings)

    def test_returns_cached_instance(self):
        assert get_settings() is get_settings()


class TestGetDocumentStore:
    def test_memory_backend_by_default(self):
        assert isinstance(get_document_store(), InMemoryDocumentStore)

    def test_dynamodb_backend_from_environment(self, monkeypatch):
        monkeypatch.setenv("PERSISTENCE_BACKEND", "dynamodb")

        assert isinstance(get_document_store(), DynamoDBDocumentStore)

    def test_store_is_shared(self):
        assert get_document_store() is get_document_store()


class TestGetIdempotencyLedger:
    def test_uses_shared_store_and_prefixed_table(self, monkeypatch):
        monkeypatch.setenv("PREFIX", "dev-")
        monkeypatch.setenv("IDEMPOTENCY_TTL_SECONDS", "600")

        ledger = get_idempotency_ledger()

        assert isinstance(ledger, IdempotencyLedger)
        assert ledger.store is get_document_store()
        assert ledger.table_name == "dev-idempotency_records"
        assert ledger.ttl_seconds == 600


class TestGetOperationExecutor:
    def test_policy_comes_from_retry_settings(self, monkeypatch):
        monkeypatch.setenv("RETRY_STRATEGY", "linear")
        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "6")

        executor = get_operation_executor()

        assert isinstance(executor, OperationExecutor)
        assert executor.policy.strategy == BackoffStrategy.LINEAR
        assert executor.policy.max_attempts == 6
        assert executor.ledger is get_idempotency_ledger()
        assert executor.store is get_document_store()

    def test_reset_providers_builds_new_instances(self):
        first = get_operation_executor()

        reset_providers()

        assert get_operation_executor() is not first


class TestInitializeApplication:
    def test_configures_logging_with_app_info(self, monkeypatch):
        monkeypatch.setenv("GIT_SHA", "abc123")

        with patch("infrastructure.services.providers.configure_logging") as mock_configure:
            logger = initialize_application()

        mock_configure.assert_called_once()
        kwargs = mock_configure.call_args.kwargs
        assert kwargs["log_level"] == get_settings().LOG_LEVEL
        assert kwargs["is_production"] == get_settings().is_production
        (app_info,) = kwargs["extra_processors"]
        assert app_info(None, "info", {}) == {
            "app_name": "operation-executor",
            "app_version": "abc123",
        }
        logger.info.assert_called_once()
        assert logger.info.call_args.args == ("configuration_loaded",)

    def test_configures_once_per_process(self):
        with patch("infrastructure.services.providers.configure_logging") as mock_configure:
            first = initialize_application()
            second = initialize_application()

        assert first is second
        mock_configure.assert_called_once()
