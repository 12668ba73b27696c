"""
Inventory Service Event Models

Pydantic payloads for events published when units change state
"""

from pydantic import BaseModel, Field
from enum import Enum
from typing import Optional
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InventoryEventType(str, Enum):
    """
    Events published for inventory units.

    Subjects: inventory_service.inventory.>
    """
    UNIT_RESERVED = "inventory.reserved"
    UNIT_RELEASED = "inventory.released"
    RESERVATIONS_SWEPT = "inventory.swept"
    UNIT_RESTOCKED = "inventory.restocked"


class UnitReservedEvent(BaseModel):
    """A unit moved available -> reserved"""
    unit_id: str
    product_id: str
    session_id: str
    reserved_at: datetime
    timestamp: datetime = Field(default_factory=_utcnow)


class UnitReleasedEvent(BaseModel):
    """A reservation was dropped (expiry, cancellation or compensation)"""
    unit_id: str
    product_id: str
    session_id: Optional[str] = None
    reason: str
    timestamp: datetime = Field(default_factory=_utcnow)


class ReservationsSweptEvent(BaseModel):
    """Expired reservations of a product returned to the pool"""
    product_id: str
    released_count: int
    cutoff: datetime
    timestamp: datetime = Field(default_factory=_utcnow)


class UnitRestockedEvent(BaseModel):
    """A new unit was added to a product"""
    unit_id: str
    product_id: str
    timestamp: datetime = Field(default_factory=_utcnow)
