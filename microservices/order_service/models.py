"""
Order Service Data Models

Pydantic models for the order ledger and delivered assets.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from enum import Enum


class OrderStatus(str, Enum):
    """Order status enumeration. Transitions are one-way out of PENDING."""
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING

    def can_transition_to(self, target: "OrderStatus") -> bool:
        return self is OrderStatus.PENDING and target in (
            OrderStatus.COMPLETED,
            OrderStatus.CANCELLED,
        )


class PaymentMethod(str, Enum):
    """How the buyer pays"""
    CARD = "card"
    USDT = "usdt"


class AssetType(str, Enum):
    KEY = "key"


# Core Order Models

class Order(BaseModel):
    """One purchase attempt"""
    order_id: str
    user_id: str
    product_id: str
    unit_id: Optional[str] = None
    external_session_id: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.CARD
    total_amount: Decimal
    currency: str = "usd"
    status: OrderStatus = OrderStatus.PENDING
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class DeliverableAsset(BaseModel):
    """Secret content copied from a unit when its order completed"""
    asset_id: str
    order_id: str
    user_id: str
    product_id: str
    unit_id: str
    content: str = Field(..., repr=False)
    asset_type: AssetType = AssetType.KEY
    created_at: datetime


class VaultItem(BaseModel):
    """Delivered asset joined with its completed order"""
    asset_id: str
    order_id: str
    product_id: str
    content: str
    asset_type: AssetType = AssetType.KEY
    total_amount: Decimal
    currency: str
    payment_method: PaymentMethod
    completed_at: Optional[datetime] = None
    created_at: datetime


# Request Models

class ManualOrderRequest(BaseModel):
    """Create a manual-payment order"""
    product_id: str = Field(..., min_length=1)
    payment_method: PaymentMethod = PaymentMethod.USDT


class CancelOrderRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


# Response Models

class OrderResponse(BaseModel):
    """Order without internal fields"""
    order_id: str
    product_id: str
    payment_method: PaymentMethod
    total_amount: Decimal
    currency: str
    status: OrderStatus
    created_at: datetime
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(**order.model_dump(include=set(cls.model_fields)))


class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    count: int


class VaultResponse(BaseModel):
    items: List[VaultItem]
    count: int
