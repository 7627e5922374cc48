"""Application configuration settings - main aggregator."""

from pydantic_settings import BaseSettings, SettingsConfigDict

# Integration settings
from infrastructure.configuration.integrations import AwsSettings

# Feature settings
from infrastructure.configuration.features import (
    ListingsFeatureSettings,
    ToursFeatureSettings,
)

# Infrastructure settings
from infrastructure.configuration.infrastructure import (
    IdempotencySettings,
    PersistenceSettings,
    RetrySettings,
)


class Settings(BaseSettings):
    """Application configuration settings - main aggregator.

    Aggregates all domain-specific settings into a single configuration object.
    Settings are organized by concern:

    - **Integrations**: External service configuration (AWS)
    - **Features**: Feature module configuration (listings, tours)
    - **Infrastructure**: Core write-path configuration (persistence,
      idempotency, retry)

    Environment Variables:
        PREFIX: Table-name prefix for non-production deployments
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        GIT_SHA: Git commit SHA for deployment tracking

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        region = settings.aws.AWS_REGION
        ledger_table = settings.table_name(settings.idempotency.IDEMPOTENCY_TABLE)

        if settings.is_production:
            # Production-specific logic...
        ```
    """

    # Application-level settings
    PREFIX: str = ""
    LOG_LEVEL: str = "INFO"
    GIT_SHA: str = "Unknown"

    # Integration settings
    aws: AwsSettings

    # Feature settings
    listings: ListingsFeatureSettings
    tours: ToursFeatureSettings

    # Infrastructure settings
    persistence: PersistenceSettings
    idempotency: IdempotencySettings
    retry: RetrySettings

    @property
    def is_production(self) -> bool:
        """Check if the application is running in production.

        Returns:
            True if PREFIX is empty (production), False otherwise.
        """
        return not bool(self.PREFIX)

    def table_name(self, name: str) -> str:
        """Resolve a physical table name, applying PREFIX when set.

        Args:
            name: Logical table name

        Returns:
            ``{PREFIX}{name}``
        """
        return f"{self.PREFIX}{name}"

    def __init__(self, **kwargs):
        """Initialize Settings with automatic subsettings instantiation.

        Args:
            **kwargs: Optional overrides for specific settings sections.
        """
        settings_map = {
            # Integrations
            "aws": AwsSettings,
            # Features
            "listings": ListingsFeatureSettings,
            "tours": ToursFeatureSettings,
            # Infrastructure
            "persistence": PersistenceSettings,
            "idempotency": IdempotencySettings,
            "retry": RetrySettings,
        }

        for setting_name, setting_class in settings_map.items():
            if setting_name not in kwargs:
                kwargs[setting_name] = setting_class()

        super().__init__(**kwargs)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )
