"""
Inventory Service Data Models

Allocatable digital-asset units (license keys, credentials) and the
read-only product catalog view the reservation core depends on.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

# Reservations held for manual-payment orders carry this prefix and are
# exempt from the TTL sweep until an admin completes or cancels the order.
MANUAL_HOLD_PREFIX = "manual_"


class UnitState(str, Enum):
    """Unit state. USED is terminal."""
    AVAILABLE = "available"
    RESERVED = "reserved"
    USED = "used"


class InventoryUnit(BaseModel):
    """One allocatable asset instance"""
    unit_id: str
    product_id: str
    secret_content: str = Field(..., repr=False)
    state: UnitState = UnitState.AVAILABLE
    reserved_session_id: Optional[str] = None
    reserved_at: Optional[datetime] = None
    used_by_order_id: Optional[str] = None
    created_at: Optional[datetime] = None

    def is_reserved_by(self, session_id: str) -> bool:
        return self.state == UnitState.RESERVED and self.reserved_session_id == session_id

    def to_summary(self) -> "UnitSummary":
        return UnitSummary(**self.model_dump(exclude={"secret_content"}))


class UnitSummary(BaseModel):
    """Unit without its secret payload (admin listings)"""
    unit_id: str
    product_id: str
    state: UnitState
    reserved_session_id: Optional[str] = None
    reserved_at: Optional[datetime] = None
    used_by_order_id: Optional[str] = None
    created_at: Optional[datetime] = None


class Product(BaseModel):
    """Catalog product as seen by checkout (price and stock counter)"""
    product_id: str
    title: str
    description: str = ""
    price: Decimal
    currency: str = "usd"
    stock: int = Field(default=0, ge=0)
    is_active: bool = True

    @property
    def unit_amount(self) -> int:
        """Price in minor currency units"""
        return int((self.price * 100).to_integral_value())


# Request Models

class AddUnitRequest(BaseModel):
    """Restock: add one unit to a product"""
    product_id: str = Field(..., min_length=1)
    secret_content: str = Field(..., min_length=1, repr=False)


class UnitListResponse(BaseModel):
    units: List[UnitSummary]
    count: int
