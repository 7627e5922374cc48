"""Service layer for the listings module.

Listings, their offerings and promotion references are written through the
idempotent operation executor: every public method takes the client's
idempotency key and returns an OperationResult. Each method builds one
operation whose writes, plus the ledger record, commit in a single unit of
work.

Deleting a listing cascades explicitly: its offerings are deleted and the
listing is pulled from its promotion in the same unit of work as the
listing delete.

Payment events approve listings. They carry no client key, so the key is
derived from the payment reference and a redelivered event replays.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from infrastructure.idempotency import IdempotencyKeyBuilder
from infrastructure.logging import get_module_logger
from infrastructure.operations import (
    InvalidKeyError,
    NotFoundError,
    OperationResult,
    ValidationError,
)
from infrastructure.persistence import UnitOfWork
from infrastructure.resilience import BackoffPolicy, OperationExecutor

if TYPE_CHECKING:
    from infrastructure.configuration import Settings

logger = get_module_logger()

# Attributes owned by the service; callers cannot set them through payloads.
RESERVED_LISTING_FIELDS = frozenset({"id", "offerings", "provider", "created_at"})
RESERVED_OFFERING_FIELDS = frozenset({"id", "listing_id", "created_at"})

LISTING_PAYMENT_EVENT_KEYS = IdempotencyKeyBuilder(namespace="listings")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check_fields(changes: Dict[str, Any], reserved: frozenset, entity: str) -> None:
    if not changes:
        raise ValidationError(f"No fields given for {entity}")
    forbidden = sorted(reserved.intersection(changes))
    if forbidden:
        raise ValidationError(
            f"Reserved fields cannot be set on {entity}: {', '.join(forbidden)}"
        )


class ListingService:
    """Idempotent writes for listings and offerings.

    Args:
        executor: Operation executor
        listings_table: Physical listings table name
        offerings_table: Physical offerings table name
        promotions_table: Physical promotions table name
        create_policy: Backoff policy for listing creates (exponential by default)
        update_policy: Backoff policy for listing updates and deletes (linear by
            default)
        offering_policy: Backoff policy for every offering write (exponential
            by default)
        approval_policy: Backoff policy for approvals (linear with jitter by
            default)
        id_factory: Generates identifiers for new documents
    """

    def __init__(
        self,
        executor: OperationExecutor,
        listings_table: str = "listings",
        offerings_table: str = "offerings",
        promotions_table: str = "promotions",
        create_policy: Optional[BackoffPolicy] = None,
        update_policy: Optional[BackoffPolicy] = None,
        offering_policy: Optional[BackoffPolicy] = None,
        approval_policy: Optional[BackoffPolicy] = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self.executor = executor
        self.listings_table = listings_table
        self.offerings_table = offerings_table
        self.promotions_table = promotions_table
        self.create_policy = create_policy or BackoffPolicy.exponential()
        self.update_policy = update_policy or BackoffPolicy.linear()
        self.offering_policy = offering_policy or BackoffPolicy.exponential()
        self.approval_policy = approval_policy or BackoffPolicy.linear_jitter()
        self._new_id = id_factory

    @classmethod
    def from_settings(
        cls, settings: "Settings", executor: OperationExecutor
    ) -> "ListingService":
        listings = settings.listings
        return cls(
            executor=executor,
            listings_table=settings.table_name(listings.LISTINGS_TABLE),
            offerings_table=settings.table_name(listings.OFFERINGS_TABLE),
            promotions_table=settings.table_name(listings.PROMOTIONS_TABLE),
            create_policy=BackoffPolicy.named(listings.WRITE_STRATEGY),
            offering_policy=BackoffPolicy.named(listings.WRITE_STRATEGY),
        )

    def create_listing(
        self, key: str, payload: Dict[str, Any], provider: str
    ) -> OperationResult:
        """Create a listing owned by ``provider``.

        Returns:
            OperationResult with a 201 stored response ``{"data": {"listing_id": ...}}``
        """
        listing_id = self._new_id()

        def create_listing(uow: UnitOfWork) -> Dict[str, Any]:
            _check_fields(payload, RESERVED_LISTING_FIELDS, "listing")
            uow.put(
                self.listings_table,
                {
                    **payload,
                    "id": listing_id,
                    "provider": provider,
                    "created_at": _utc_now(),
                },
                if_absent=True,
            )
            return {"data": {"listing_id": listing_id}}

        result = self.executor.execute(
            key, create_listing, policy=self.create_policy, status_code=201
        )
        logger.info(
            "create_listing_completed",
            listing_id=listing_id,
            success=result.is_success,
            replayed=result.replayed,
        )
        return result

    def update_listing(
        self, key: str, listing_id: str, changes: Dict[str, Any]
    ) -> OperationResult:
        """Apply ``changes`` to an existing listing."""

        def update_listing(uow: UnitOfWork) -> Dict[str, Any]:
            _check_fields(changes, RESERVED_LISTING_FIELDS, "listing")
            uow.update(self.listings_table, {"id": listing_id}, set_fields=changes)
            return {"data": None}

        return self.executor.execute(key, update_listing, policy=self.update_policy)

    def add_offering(
        self, key: str, listing_id: str, payload: Dict[str, Any]
    ) -> OperationResult:
        """Create an offering and attach it to its listing."""
        offering_id = self._new_id()

        def add_offering(uow: UnitOfWork) -> Dict[str, Any]:
            _check_fields(payload, RESERVED_OFFERING_FIELDS, "offering")
            if uow.get(self.listings_table, {"id": listing_id}) is None:
                raise NotFoundError(f"No record found for listing: {listing_id}")

            uow.put(
                self.offerings_table,
                {
                    **payload,
                    "id": offering_id,
                    "listing_id": listing_id,
                    "created_at": _utc_now(),
                },
                if_absent=True,
            )
            uow.update(
                self.listings_table,
                {"id": listing_id},
                add_to_set={"offerings": [offering_id]},
            )
            return {"data": {"offering_id": offering_id, "listing_id": listing_id}}

        return self.executor.execute(
            key, add_offering, policy=self.offering_policy, status_code=201
        )

    def update_offering(
        self, key: str, offering_id: str, changes: Dict[str, Any]
    ) -> OperationResult:
        def update_offering(uow: UnitOfWork) -> Dict[str, Any]:
            _check_fields(changes, RESERVED_OFFERING_FIELDS, "offering")
            uow.update(self.offerings_table, {"id": offering_id}, set_fields=changes)
            return {"data": None}

        return self.executor.execute(key, update_offering, policy=self.offering_policy)

    def remove_offering(
        self, key: str, listing_id: str, offering_id: str
    ) -> OperationResult:
        """Delete an offering and pull it from its listing."""

        def remove_offering(uow: UnitOfWork) -> Dict[str, Any]:
            offering = uow.get(self.offerings_table, {"id": offering_id})
            if offering is None or offering.get("listing_id") != listing_id:
                raise NotFoundError(
                    f"No offering {offering_id} found for listing: {listing_id}"
                )

            uow.delete(self.offerings_table, {"id": offering_id}, must_exist=True)
            uow.update(
                self.listings_table,
                {"id": listing_id},
                remove_from_set={"offerings": [offering_id]},
            )
            return {"data": None}

        return self.executor.execute(key, remove_offering, policy=self.offering_policy)

    def delete_listing(self, key: str, listing_id: str) -> OperationResult:
        """Delete a listing with its offerings and its promotion reference."""

        def delete_listing(uow: UnitOfWork) -> Dict[str, Any]:
            listing = uow.get(self.listings_table, {"id": listing_id})
            if listing is None:
                raise NotFoundError(f"No record found for listing: {listing_id}")

            offering_ids = sorted(listing.get("offerings") or ())
            for offering_id in offering_ids:
                uow.delete(self.offerings_table, {"id": offering_id})

            promotion_id = listing.get("promotion_id")
            if promotion_id and uow.get(self.promotions_table, {"id": promotion_id}):
                uow.update(
                    self.promotions_table,
                    {"id": promotion_id},
                    remove_from_set={"listings": [listing_id]},
                )

            uow.delete(self.listings_table, {"id": listing_id}, must_exist=True)
            return {
                "data": {
                    "listing_id": listing_id,
                    "deleted_offerings": offering_ids,
                }
            }

        result = self.executor.execute(key, delete_listing, policy=self.update_policy)
        if result.is_success:
            logger.info("listing_deleted", listing_id=listing_id)
        return result

    def approve_listing(
        self,
        key: str,
        listing_id: str,
        policy: Optional[BackoffPolicy] = None,
    ) -> OperationResult:
        """Mark a listing approved; other status attributes are kept."""

        def approve_listing(uow: UnitOfWork) -> Dict[str, Any]:
            listing = uow.get(self.listings_table, {"id": listing_id})
            if listing is None:
                raise NotFoundError(f"No record found for listing: {listing_id}")

            status = dict(listing.get("status") or {})
            status["approved"] = True
            uow.update(self.listings_table, {"id": listing_id}, set_fields={"status": status})
            return {"data": f"Approval for listing {listing_id} successful."}

        return self.executor.execute(
            key, approve_listing, policy=policy or self.approval_policy
        )

    def handle_listing_payment_event(self, event: Dict[str, Any]) -> OperationResult:
        """Approve the listing a confirmed payment was made for.

        The event's ``detail`` (a JSON string or a dict) carries the
        ``listing_id`` and the ``payment_reference``; the idempotency key is
        derived from the reference.
        """
        try:
            detail = event.get("detail") or {}
            if isinstance(detail, str):
                detail = json.loads(detail)
        except ValueError as exc:
            logger.error("listing_payment_event_unreadable", error=str(exc))
            return OperationResult.failure(
                ValidationError(f"Payment event detail is not valid JSON: {exc}")
            )

        if not isinstance(detail, dict):
            logger.error("listing_payment_event_unreadable", error="detail is not an object")
            return OperationResult.failure(
                ValidationError("Payment event detail must be a JSON object")
            )

        reference = detail.get("payment_reference")
        if not reference:
            logger.error("listing_payment_event_missing_reference")
            return OperationResult.failure(
                InvalidKeyError(
                    "Payment event has no payment_reference",
                    error_code="MISSING_PAYMENT_REFERENCE",
                )
            )

        listing_id = detail.get("listing_id")
        if not listing_id:
            logger.error("listing_payment_event_missing_listing", payment_reference=reference)
            return OperationResult.failure(
                ValidationError("Payment event has no listing_id")
            )

        key = LISTING_PAYMENT_EVENT_KEYS.build(
            "listing_payment", payment_reference=reference
        )
        result = self.approve_listing(key, listing_id)
        if not result.is_success:
            logger.error(
                "listing_approval_failed",
                listing_id=listing_id,
                payment_reference=reference,
                error_code=result.error_code,
                error=result.message,
            )
        return result
