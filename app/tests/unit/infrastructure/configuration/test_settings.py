"""Unit tests for infrastructure.configuration.

Tests cover:
- RetrySettings validation and defaults
- PersistenceSettings and IdempotencySettings environment loading
- Settings aggregation, table prefixing and production detection
"""

import pytest
from pydantic import ValidationError

from infrastructure.configuration import (
    IdempotencySettings,
    PersistenceSettings,
    RetrySettings,
    Settings,
)
from infrastructure.configuration.integrations import AwsSettings
from infrastructure.services.providers import get_settings

ENV_VARS = (
    "PREFIX",
    "LOG_LEVEL",
    "AWS_REGION",
    "DYNAMODB_ENDPOINT_URL",
    "DYNAMODB_ROLE_ARN",
    "PERSISTENCE_BACKEND",
    "IDEMPOTENCY_TABLE",
    "IDEMPOTENCY_TTL_SECONDS",
    "RETRY_STRATEGY",
    "RETRY_MAX_ATTEMPTS",
    "RETRY_BASE_DELAY_SECONDS",
    "RETRY_JITTER_SECONDS",
    "RETRY_MAX_DELAY_SECONDS",
    "TOURS_UPDATE_STRATEGY",
)


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestRetrySettings:
    def test_defaults(self):
        retry = RetrySettings()

        assert retry.strategy == "exponential"
        assert retry.max_attempts == 4
        assert retry.base_delay_seconds == 7.5
        assert retry.jitter_seconds == 1.0
        assert retry.max_delay_seconds == 60.0

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("RETRY_STRATEGY", "LINEAR")
        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "6")
        monkeypatch.setenv("RETRY_BASE_DELAY_SECONDS", "2.5")

        retry = RetrySettings()

        assert retry.strategy == "linear"
        assert retry.max_attempts == 6
        assert retry.base_delay_seconds == 2.5

    def test_unknown_strategy_is_rejected(self, monkeypatch):
        monkeypatch.setenv("RETRY_STRATEGY", "fibonacci")

        with pytest.raises(ValidationError):
            RetrySettings()

    def test_max_attempts_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "0")

        with pytest.raises(ValidationError):
            RetrySettings()

    def test_cap_below_base_is_rejected(self, monkeypatch):
        monkeypatch.setenv("RETRY_BASE_DELAY_SECONDS", "10")
        monkeypatch.setenv("RETRY_MAX_DELAY_SECONDS", "5")

        with pytest.raises(ValidationError):
            RetrySettings()


class TestPersistenceSettings:
    def test_defaults_to_memory(self):
        persistence = PersistenceSettings()

        assert persistence.backend == "memory"
        assert persistence.connect_timeout_seconds == 5.0
        assert persistence.read_timeout_seconds == 10.0

    def test_backend_is_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("PERSISTENCE_BACKEND", "DynamoDB")

        assert PersistenceSettings().backend == "dynamodb"

    def test_unknown_backend_is_rejected(self, monkeypatch):
        monkeypatch.setenv("PERSISTENCE_BACKEND", "postgres")

        with pytest.raises(ValidationError):
            PersistenceSettings()


class TestIdempotencySettings:
    def test_defaults(self):
        idempotency = IdempotencySettings()

        assert idempotency.IDEMPOTENCY_TABLE == "idempotency_records"
        assert idempotency.IDEMPOTENCY_TTL_SECONDS == 86400
        assert idempotency.IDEMPOTENCY_KEY_HEADER == "Idempotency-Key"
        assert idempotency.IDEMPOTENCY_KEY_MAX_LENGTH == 255

    def test_ttl_from_environment(self, monkeypatch):
        monkeypatch.setenv("IDEMPOTENCY_TTL_SECONDS", "3600")

        assert IdempotencySettings().IDEMPOTENCY_TTL_SECONDS == 3600


class TestAwsSettings:
    def test_service_role_map_is_empty_without_role(self):
        assert AwsSettings().SERVICE_ROLE_MAP == {}

    def test_service_role_map_with_role(self, monkeypatch):
        monkeypatch.setenv("DYNAMODB_ROLE_ARN", "arn:aws:iam::123456789012:role/writer")

        assert AwsSettings().SERVICE_ROLE_MAP == {
            "dynamodb": "arn:aws:iam::123456789012:role/writer"
        }


class TestSettings:
    def test_subsettings_are_instantiated(self):
        settings = Settings()

        assert isinstance(settings.retry, RetrySettings)
        assert isinstance(settings.persistence, PersistenceSettings)
        assert isinstance(settings.idempotency, IdempotencySettings)
        assert settings.tours.UPDATE_STRATEGY == "linear"
        assert settings.listings.LISTINGS_TABLE == "listings"

    def test_explicit_subsettings_are_kept(self):
        settings = Settings(retry=RetrySettings(RETRY_MAX_ATTEMPTS=2))

        assert settings.retry.max_attempts == 2

    def test_production_when_prefix_is_empty(self):
        assert Settings().is_production is True

    def test_prefix_marks_non_production_and_prefixes_tables(self, monkeypatch):
        monkeypatch.setenv("PREFIX", "dev-")

        settings = Settings()

        assert settings.is_production is False
        assert settings.table_name("tours") == "dev-tours"

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
