"""Tours module.

Idempotent tour scheduling, status transitions and event-driven creation.
"""

from modules.tours.service import TRANSITIONS, TourService, TourStatus

__all__ = ["TourService", "TourStatus", "TRANSITIONS"]
