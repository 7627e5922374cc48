"""Event entry points for the tours module."""

from typing import Any, Dict, Optional

from infrastructure.services import (
    get_operation_executor,
    get_settings,
    initialize_application,
)
from modules.tours.service import TourService


def tour_created_handler(
    event: Dict[str, Any], context: Optional[Any] = None
) -> Dict[str, Any]:
    """Schedule the tour carried by a tour-created event."""
    initialize_application()
    service = TourService.from_settings(get_settings(), get_operation_executor())
    return service.handle_tour_created_event(event).to_response()
