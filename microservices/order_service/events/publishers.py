"""
Order Service Event Publishers

Functions to publish order lifecycle events
"""

import logging
from typing import Optional

from core.nats_client import Event, EventType, ServiceSource
from ..models import Order
from .models import (
    OrderCreatedEvent,
    OrderCompletedEvent,
    OrderCancelledEvent,
)

logger = logging.getLogger(__name__)


async def publish_order_created(event_bus, order: Order) -> bool:
    """Publish order.created event"""
    if not event_bus:
        logger.debug("Event bus not available, skipping order.created event")
        return False

    try:
        event_data = OrderCreatedEvent(
            order_id=order.order_id,
            user_id=order.user_id,
            product_id=order.product_id,
            payment_method=order.payment_method.value,
            total_amount=str(order.total_amount),
            currency=order.currency,
        )

        event = Event(
            event_type=EventType.ORDER_CREATED,
            source=ServiceSource.ORDER_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"Published order.created event for order {order.order_id}")
        return True

    except Exception as e:
        logger.error(f"Failed to publish order.created event: {e}")
        return False


async def publish_order_completed(event_bus, order: Order, unit_id: str) -> bool:
    """Publish order.completed event"""
    if not event_bus:
        logger.debug("Event bus not available, skipping order.completed event")
        return False

    try:
        event_data = OrderCompletedEvent(
            order_id=order.order_id,
            user_id=order.user_id,
            product_id=order.product_id,
            unit_id=unit_id,
            payment_method=order.payment_method.value,
            total_amount=str(order.total_amount),
            currency=order.currency,
            external_session_id=order.external_session_id,
        )

        event = Event(
            event_type=EventType.ORDER_COMPLETED,
            source=ServiceSource.ORDER_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"Published order.completed event for order {order.order_id}")
        return True

    except Exception as e:
        logger.error(f"Failed to publish order.completed event: {e}")
        return False


async def publish_order_cancelled(
    event_bus, order: Order, reason: Optional[str] = None
) -> bool:
    """Publish order.cancelled event"""
    if not event_bus:
        logger.debug("Event bus not available, skipping order.cancelled event")
        return False

    try:
        event_data = OrderCancelledEvent(
            order_id=order.order_id,
            user_id=order.user_id,
            product_id=order.product_id,
            cancellation_reason=reason,
        )

        event = Event(
            event_type=EventType.ORDER_CANCELLED,
            source=ServiceSource.ORDER_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"Published order.cancelled event for order {order.order_id}")
        return True

    except Exception as e:
        logger.error(f"Failed to publish order.cancelled event: {e}")
        return False
