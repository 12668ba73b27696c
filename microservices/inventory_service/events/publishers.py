"""
Inventory Service Event Publishers

Publishing is best-effort: failures are logged and never propagate into the
state transition that triggered them.
"""

import logging
from datetime import datetime
from typing import Optional

from core.nats_client import Event, EventType, ServiceSource
from .models import (
    UnitReservedEvent,
    UnitReleasedEvent,
    ReservationsSweptEvent,
    UnitRestockedEvent,
)

logger = logging.getLogger(__name__)


async def _publish(event_bus, event_type: EventType, data: dict) -> bool:
    if not event_bus:
        logger.debug(f"Event bus not available, skipping {event_type.value} event")
        return False

    try:
        event = Event(
            event_type=event_type,
            source=ServiceSource.INVENTORY_SERVICE,
            data=data,
        )
        await event_bus.publish_event(event)
        logger.info(f"Published {event_type.value} event")
        return True

    except Exception as e:
        logger.error(f"Failed to publish {event_type.value} event: {e}")
        return False


async def publish_unit_reserved(
    event_bus,
    unit_id: str,
    product_id: str,
    session_id: str,
    reserved_at: datetime,
) -> bool:
    """Publish inventory.reserved event"""
    payload = UnitReservedEvent(
        unit_id=unit_id,
        product_id=product_id,
        session_id=session_id,
        reserved_at=reserved_at,
    )
    return await _publish(event_bus, EventType.INVENTORY_RESERVED, payload.model_dump(mode="json"))


async def publish_unit_released(
    event_bus,
    unit_id: str,
    product_id: str,
    reason: str,
    session_id: Optional[str] = None,
) -> bool:
    """Publish inventory.released event"""
    payload = UnitReleasedEvent(
        unit_id=unit_id,
        product_id=product_id,
        session_id=session_id,
        reason=reason,
    )
    return await _publish(event_bus, EventType.INVENTORY_RELEASED, payload.model_dump(mode="json"))


async def publish_reservations_swept(
    event_bus,
    product_id: str,
    released_count: int,
    cutoff: datetime,
) -> bool:
    """Publish inventory.swept event"""
    payload = ReservationsSweptEvent(
        product_id=product_id,
        released_count=released_count,
        cutoff=cutoff,
    )
    return await _publish(event_bus, EventType.INVENTORY_SWEPT, payload.model_dump(mode="json"))


async def publish_unit_restocked(event_bus, unit_id: str, product_id: str) -> bool:
    """Publish inventory.restocked event"""
    payload = UnitRestockedEvent(unit_id=unit_id, product_id=product_id)
    return await _publish(event_bus, EventType.INVENTORY_RESTOCKED, payload.model_dump(mode="json"))
