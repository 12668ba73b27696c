"""
Checkout Service Events Module
"""

from .models import FulfillmentRejectedEvent
from .publishers import publish_fulfillment_rejected

__all__ = [
    "FulfillmentRejectedEvent",
    "publish_fulfillment_rejected",
]
