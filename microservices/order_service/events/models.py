"""
Order Service Event Models

Pydantic models for events published about orders
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderCreatedEvent(BaseModel):
    """Event published when a pending order is created"""
    order_id: str
    user_id: str
    product_id: str
    payment_method: str
    total_amount: str
    currency: str = "usd"
    timestamp: datetime = Field(default_factory=_utcnow)


class OrderCompletedEvent(BaseModel):
    """Event published when an order completes and its asset is delivered"""
    order_id: str
    user_id: str
    product_id: str
    unit_id: str
    payment_method: str
    total_amount: str
    currency: str = "usd"
    external_session_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class OrderCancelledEvent(BaseModel):
    """Event published when a pending order is cancelled"""
    order_id: str
    user_id: str
    product_id: str
    cancellation_reason: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)
