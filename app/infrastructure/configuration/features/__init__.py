"""Feature settings __init__ - exports all feature settings."""

from infrastructure.configuration.features.listings import ListingsFeatureSettings
from infrastructure.configuration.features.tours import ToursFeatureSettings

__all__ = [
    "ListingsFeatureSettings",
    "ToursFeatureSettings",
]
