"""Tours feature settings."""

from pydantic import Field

from infrastructure.configuration.base import FeatureSettings


class ToursFeatureSettings(FeatureSettings):
    """Tour scheduling storage configuration.

    Environment Variables:
        TOURS_TABLE: Tours table name (default: tours)
        TOURS_CREATE_STRATEGY: Backoff strategy for tour scheduling (default: exponential)
        TOURS_UPDATE_STRATEGY: Backoff strategy for tour updates (default: linear)
    """

    TOURS_TABLE: str = Field(default="tours", alias="TOURS_TABLE")
    CREATE_STRATEGY: str = Field(default="exponential", alias="TOURS_CREATE_STRATEGY")
    UPDATE_STRATEGY: str = Field(default="linear", alias="TOURS_UPDATE_STRATEGY")
