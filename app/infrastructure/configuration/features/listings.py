"""Listings feature settings."""

from pydantic import Field

from infrastructure.configuration.base import FeatureSettings


class ListingsFeatureSettings(FeatureSettings):
    """Listings, offerings and promotions storage configuration.

    Environment Variables:
        LISTINGS_TABLE: Listings table name (default: listings)
        OFFERINGS_TABLE: Offerings table name (default: offerings)
        PROMOTIONS_TABLE: Promotions table name (default: promotions)
        LISTINGS_WRITE_STRATEGY: Backoff strategy for listing writes (default: exponential)
    """

    LISTINGS_TABLE: str = Field(default="listings", alias="LISTINGS_TABLE")
    OFFERINGS_TABLE: str = Field(default="offerings", alias="OFFERINGS_TABLE")
    PROMOTIONS_TABLE: str = Field(default="promotions", alias="PROMOTIONS_TABLE")
    WRITE_STRATEGY: str = Field(default="exponential", alias="LISTINGS_WRITE_STRATEGY")
