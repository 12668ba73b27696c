"""
Checkout Service Event Publishers
"""

import logging
from typing import Optional

from core.nats_client import Event, EventType, ServiceSource
from .models import FulfillmentRejectedEvent

logger = logging.getLogger(__name__)


async def publish_fulfillment_rejected(
    event_bus,
    session_id: str,
    reason: str,
    user_id: Optional[str] = None,
    product_id: Optional[str] = None,
    unit_id: Optional[str] = None,
    bound_unit_id: Optional[str] = None,
) -> bool:
    """Publish fulfillment.rejected alert"""
    if not event_bus:
        logger.warning("Event bus not available, skipping fulfillment.rejected event")
        return False

    try:
        event_data = FulfillmentRejectedEvent(
            session_id=session_id,
            reason=reason,
            user_id=user_id,
            product_id=product_id,
            unit_id=unit_id,
            bound_unit_id=bound_unit_id,
        )

        event = Event(
            event_type=EventType.FULFILLMENT_REJECTED,
            source=ServiceSource.CHECKOUT_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"Published fulfillment.rejected event for session {session_id}")
        return True

    except Exception as e:
        logger.error(f"Failed to publish fulfillment.rejected event: {e}")
        return False
