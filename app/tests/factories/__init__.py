"""Test data factories for deterministic test data generation."""

from tests.factories.dynamodb import (
    make_cancellation_error,
    make_client_error,
)
from tests.factories.listings import (
    make_listing_payload,
    make_offering_payload,
    make_tour_payload,
)

__all__ = [
    "make_client_error",
    "make_cancellation_error",
    "make_listing_payload",
    "make_offering_payload",
    "make_tour_payload",
]
