"""Listings module.

Idempotent writes for listings, offerings and promotion references.
"""

from modules.listings.service import ListingService

__all__ = ["ListingService"]
