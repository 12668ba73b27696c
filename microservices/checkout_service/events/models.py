"""
Checkout Service Event Models
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class FulfillmentRejectedEvent(BaseModel):
    """
    A confirmed payment could not be fulfilled automatically.

    The buyer has been charged and holds no asset; an operator has to act.
    """
    session_id: str
    reason: str
    user_id: Optional[str] = None
    product_id: Optional[str] = None
    unit_id: Optional[str] = None
    bound_unit_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
