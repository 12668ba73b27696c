"""
Inventory Service Events Module

Exports all event-related functionality for inventory service
"""

from .models import (
    InventoryEventType,
    UnitReservedEvent,
    UnitReleasedEvent,
    ReservationsSweptEvent,
    UnitRestockedEvent,
)

from .publishers import (
    publish_unit_reserved,
    publish_unit_released,
    publish_reservations_swept,
    publish_unit_restocked,
)

__all__ = [
    # Event Types
    "InventoryEventType",
    # Event Models
    "UnitReservedEvent",
    "UnitReleasedEvent",
    "ReservationsSweptEvent",
    "UnitRestockedEvent",
    # Publishers
    "publish_unit_reserved",
    "publish_unit_released",
    "publish_reservations_swept",
    "publish_unit_restocked",
]
