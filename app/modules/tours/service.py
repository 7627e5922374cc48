"""Service layer for the tours module.

Tour scheduling and status changes are written through the idempotent
operation executor. Status changes read the tour inside the unit of work, so
two concurrent transitions of the same tour cannot both commit.
"""

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, FrozenSet, Optional

from infrastructure.idempotency import IdempotencyKeyBuilder
from infrastructure.logging import get_module_logger
from infrastructure.operations import (
    ConflictError,
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


class TourStatus(str, Enum):
    PENDING = "pending"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# action -> (allowed source statuses, target status, is_closed)
TRANSITIONS: Dict[str, tuple] = {
    "cancel": (
        frozenset({TourStatus.PENDING, TourStatus.ONGOING}),
        TourStatus.CANCELLED,
        True,
    ),
    "complete": (
        frozenset({TourStatus.PENDING, TourStatus.ONGOING}),
        TourStatus.COMPLETED,
        True,
    ),
    "reopen": (
        frozenset({TourStatus.CANCELLED}),
        TourStatus.PENDING,
        False,
    ),
}

RESERVED_TOUR_FIELDS: FrozenSet[str] = frozenset(
    {"id", "status", "is_closed", "created_at"}
)

TOUR_CREATED_EVENT_KEYS = IdempotencyKeyBuilder(namespace="tours")


class TourService:
    """Idempotent writes for tour schedules.

    Args:
        executor: Operation executor
        tours_table: Physical tours table name
        create_policy: Backoff policy for scheduling (exponential by default)
        update_policy: Backoff policy for updates and transitions (linear by default)
        event_policy: Backoff policy for event-driven creation (exponential
            with jitter by default)
        id_factory: Generates identifiers for new tours
    """

    def __init__(
        self,
        executor: OperationExecutor,
        tours_table: str = "tours",
        create_policy: Optional[BackoffPolicy] = None,
        update_policy: Optional[BackoffPolicy] = None,
        event_policy: Optional[BackoffPolicy] = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self.executor = executor
        self.tours_table = tours_table
        self.create_policy = create_policy or BackoffPolicy.exponential()
        self.update_policy = update_policy or BackoffPolicy.linear()
        self.event_policy = event_policy or BackoffPolicy.exponential_jitter()
        self._new_id = id_factory

    @classmethod
    def from_settings(
        cls, settings: "Settings", executor: OperationExecutor
    ) -> "TourService":
        tours = settings.tours
        return cls(
            executor=executor,
            tours_table=settings.table_name(tours.TOURS_TABLE),
            create_policy=BackoffPolicy.named(tours.CREATE_STRATEGY),
            update_policy=BackoffPolicy.named(tours.UPDATE_STRATEGY),
        )

    def schedule_tour(
        self,
        key: str,
        payload: Dict[str, Any],
        policy: Optional[BackoffPolicy] = None,
    ) -> OperationResult:
        """Schedule a new tour in PENDING status.

        Returns:
            OperationResult with a 201 stored response ``{"data": {"tour_id": ...}}``
        """
        tour_id = self._new_id()

        def schedule_tour(uow: UnitOfWork) -> Dict[str, Any]:
            forbidden = sorted(RESERVED_TOUR_FIELDS.intersection(payload))
            if forbidden:
                raise ValidationError(
                    f"Reserved fields cannot be set on tour: {', '.join(forbidden)}"
                )
            uow.put(
                self.tours_table,
                {
                    **payload,
                    "id": tour_id,
                    "status": TourStatus.PENDING.value,
                    "is_closed": False,
                    "created_at": datetime.now(timezone.utc).isoformat(),
                },
                if_absent=True,
            )
            return {"data": {"tour_id": tour_id}}

        return self.executor.execute(
            key,
            schedule_tour,
            policy=policy or self.create_policy,
            status_code=201,
        )

    def update_tour(
        self, key: str, tour_id: str, changes: Dict[str, Any]
    ) -> OperationResult:
        """Update schedule details; status is changed through transitions only."""

        def update_tour(uow: UnitOfWork) -> Dict[str, Any]:
            if not changes:
                raise ValidationError("No fields given for tour")
            forbidden = sorted(RESERVED_TOUR_FIELDS.intersection(changes))
            if forbidden:
                raise ValidationError(
                    f"Reserved fields cannot be set on tour: {', '.join(forbidden)}"
                )
            uow.update(self.tours_table, {"id": tour_id}, set_fields=changes)
            return {"data": None}

        return self.executor.execute(key, update_tour, policy=self.update_policy)

    def cancel_tour(self, key: str, tour_id: str) -> OperationResult:
        return self._transition(key, tour_id, "cancel")

    def complete_tour(self, key: str, tour_id: str) -> OperationResult:
        return self._transition(key, tour_id, "complete")

    def reopen_tour(self, key: str, tour_id: str) -> OperationResult:
        return self._transition(key, tour_id, "reopen")

    def _transition(self, key: str, tour_id: str, action: str) -> OperationResult:
        allowed, target, is_closed = TRANSITIONS[action]

        def transition(uow: UnitOfWork) -> Dict[str, Any]:
            tour = uow.get(self.tours_table, {"id": tour_id})
            if tour is None:
                raise NotFoundError(f"No record found for tour: {tour_id}")

            current = tour.get("status")
            if current not in {status.value for status in allowed}:
                raise ConflictError(
                    f"Cannot {action} tour {tour_id} in status '{current}'",
                    error_code="INVALID_TOUR_TRANSITION",
                )

            uow.update(
                self.tours_table,
                {"id": tour_id},
                set_fields={"status": target.value, "is_closed": is_closed},
            )
            return {"data": {"tour_id": tour_id, "status": target.value}}

        return self.executor.execute(
            key,
            transition,
            policy=self.update_policy,
            operation_name=f"{action}_tour",
        )

    def handle_tour_created_event(self, event: Dict[str, Any]) -> OperationResult:
        """Create a tour from a payment-confirmed event.

        The event's ``detail`` (a JSON string or a dict) carries the tour
        payload and a ``transaction_reference``. The idempotency key is
        derived from that reference, so redelivered events replay instead of
        scheduling a second tour.
        """
        try:
            detail = event.get("detail") or {}
            if isinstance(detail, str):
                detail = json.loads(detail)
        except ValueError as exc:
            logger.error("tour_event_unreadable", error=str(exc))
            return OperationResult.failure(
                ValidationError(f"Tour event detail is not valid JSON: {exc}")
            )

        if not isinstance(detail, dict):
            logger.error("tour_event_unreadable", error="detail is not an object")
            return OperationResult.failure(
                ValidationError("Tour event detail must be a JSON object")
            )

        reference = detail.get("transaction_reference")
        if not reference:
            logger.error("tour_event_missing_reference")
            return OperationResult.failure(
                InvalidKeyError(
                    "Tour event has no transaction_reference",
                    error_code="MISSING_TRANSACTION_REFERENCE",
                )
            )

        key = TOUR_CREATED_EVENT_KEYS.build(
            "tour_created", transaction_reference=reference
        )
        payload = {k: v for k, v in detail.items() if k != "transaction_reference"}
        result = self.schedule_tour(key, payload, policy=self.event_policy)

        if not result.is_success:
            logger.error(
                "tour_event_create_failed",
                transaction_reference=reference,
                error_code=result.error_code,
                error=result.message,
            )
        return result
