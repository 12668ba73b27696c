"""
Checkout Service Data Models

Request/response models for the HTTP surface, the payment gateway contract
and the closed set of payment events the fulfillment path understands.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# Payment gateway contract
# =============================================================================

class LineItem(BaseModel):
    """Single charge line; amount in minor currency units"""
    name: str
    unit_amount: int = Field(..., gt=0)
    currency: str = "usd"
    quantity: int = Field(default=1, ge=1)
    description: Optional[str] = None


class GatewaySession(BaseModel):
    """Hosted payment session as reported by the gateway"""
    id: str
    url: Optional[str] = None
    status: Optional[str] = None
    payment_status: str = "unpaid"
    metadata: Dict[str, str] = Field(default_factory=dict)
    amount_total: Optional[int] = None
    currency: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"


# Metadata keys attached to every session; the sole binding between a
# payment and the reserved unit.
META_USER_ID = "user_id"
META_PRODUCT_ID = "product_id"
META_UNIT_ID = "unit_id"


# =============================================================================
# Payment events (closed variant)
# =============================================================================

class PaymentSucceeded(BaseModel):
    kind: Literal["payment_succeeded"] = "payment_succeeded"
    event_id: Optional[str] = None
    session_id: str


class SessionExpired(BaseModel):
    kind: Literal["session_expired"] = "session_expired"
    event_id: Optional[str] = None
    session_id: str


class Unrecognized(BaseModel):
    kind: Literal["unrecognized"] = "unrecognized"
    event_id: Optional[str] = None
    event_type: Optional[str] = None


PaymentEvent = Annotated[
    Union[PaymentSucceeded, SessionExpired, Unrecognized],
    Field(discriminator="kind"),
]


# =============================================================================
# Checkout
# =============================================================================

class CheckoutSession(BaseModel):
    """Result of a successful checkout initiation"""
    session_id: str
    url: str
    unit_id: str
    product_id: str


class CheckoutStatus(str, Enum):
    PENDING = "pending"
    PAID_PENDING_FULFILLMENT = "paid_pending_fulfillment"
    COMPLETED = "completed"
    UNKNOWN = "unknown"


# =============================================================================
# Fulfillment
# =============================================================================

class FulfillmentStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    REJECTED = "rejected"


class RejectionReason:
    INVALID_METADATA = "invalid metadata"
    UNIT_NOT_RESERVED = "unit not reserved"
    UNIT_MISMATCH = "unit mismatch"


class FulfillmentResult(BaseModel):
    """Outcome of one fulfillment attempt"""
    status: FulfillmentStatus
    order_id: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def completed(cls, order_id: str) -> "FulfillmentResult":
        return cls(status=FulfillmentStatus.COMPLETED, order_id=order_id)

    @classmethod
    def pending(cls) -> "FulfillmentResult":
        return cls(status=FulfillmentStatus.PENDING)

    @classmethod
    def rejected(cls, reason: str) -> "FulfillmentResult":
        return cls(status=FulfillmentStatus.REJECTED, reason=reason)

    @property
    def is_completed(self) -> bool:
        return self.status == FulfillmentStatus.COMPLETED


# =============================================================================
# HTTP models
# =============================================================================

class CheckoutWireModel(BaseModel):
    """camelCase on the wire; snake_case names still accepted on input"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateCheckoutSessionRequest(CheckoutWireModel):
    product_id: str = Field(..., min_length=1)


class CheckoutSessionResponse(CheckoutWireModel):
    url: str
    session_id: str


class CompleteCheckoutRequest(CheckoutWireModel):
    session_id: str = Field(..., min_length=1)


class CompleteCheckoutResponse(CheckoutWireModel):
    success: bool
    order_id: Optional[str] = None
    pending: Optional[bool] = None


class CheckoutStatusResponse(CheckoutWireModel):
    status: CheckoutStatus
    order_id: Optional[str] = None


class WebhookAck(BaseModel):
    received: bool = True
    event_kind: str
    result: Optional[FulfillmentResult] = None


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    database: Optional[str] = None
    event_bus: Optional[str] = None
    timestamp: datetime
