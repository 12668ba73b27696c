"""
Order Service Events Module

Exports all event-related functionality for order service
"""

from .models import (
    OrderCreatedEvent,
    OrderCompletedEvent,
    OrderCancelledEvent,
)

from .publishers import (
    publish_order_created,
    publish_order_completed,
    publish_order_cancelled,
)

__all__ = [
    # Event Models
    "OrderCreatedEvent",
    "OrderCompletedEvent",
    "OrderCancelledEvent",
    # Publishers
    "publish_order_created",
    "publish_order_completed",
    "publish_order_cancelled",
]
