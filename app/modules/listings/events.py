"""Event entry points for the listings module.

Usage:
    # Payment-confirmed events are routed here by the event bus
    from modules.listings.events import listing_payment_handler

    response = listing_payment_handler(event, context)
"""

from typing import Any, Dict, Optional

from infrastructure.services import (
    get_operation_executor,
    get_settings,
    initialize_application,
)
from modules.listings.service import ListingService


def listing_payment_handler(
    event: Dict[str, Any], context: Optional[Any] = None
) -> Dict[str, Any]:
    """Approve the listing a payment event was confirmed for."""
    initialize_application()
    service = ListingService.from_settings(get_settings(), get_operation_executor())
    return service.handle_listing_payment_event(event).to_response()
