"""
Checkout Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import AsyncContextManager, Dict, Optional, Protocol, runtime_checkable

from microservices.inventory_service.protocols import InventoryRepositoryProtocol
from microservices.order_service.protocols import OrderRepositoryProtocol

from .models import GatewaySession, LineItem, PaymentEvent


# ============================================================================
# Custom Exceptions
# ============================================================================

class CheckoutServiceError(Exception):
    """Base exception for checkout errors"""
    pass


class PaymentGatewayError(CheckoutServiceError):
    """Payment provider call failed (network, 4xx, 5xx)"""

    def __init__(self, message: str, retryable: bool = False):
        self.retryable = retryable
        super().__init__(message)


class WebhookSignatureError(CheckoutServiceError):
    """Webhook payload failed signature verification"""
    pass


class SessionOwnershipError(CheckoutServiceError):
    """Caller is not the user the session was created for"""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} belongs to another user")


# ============================================================================
# Payment gateway
# ============================================================================

@runtime_checkable
class PaymentGatewayProtocol(Protocol):
    """Hosted-checkout payment provider"""

    async def create_session(
        self,
        line_item: LineItem,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> GatewaySession:
        """Open a hosted payment flow; metadata must round-trip unchanged"""
        ...

    async def retrieve_session(self, session_id: str) -> GatewaySession:
        ...

    async def expire_session(self, session_id: str) -> None:
        ...

    def verify_webhook(self, raw_body: bytes, signature: Optional[str]) -> PaymentEvent:
        """Verify the untouched request body and parse it; raises WebhookSignatureError"""
        ...


# ============================================================================
# Unit of work
# ============================================================================

@runtime_checkable
class MarketUnitOfWork(Protocol):
    """Repositories sharing one database transaction"""

    inventory: InventoryRepositoryProtocol
    orders: OrderRepositoryProtocol


@runtime_checkable
class MarketStoreProtocol(Protocol):
    """
    Single authoritative store for units and orders.

    ``inventory`` and ``orders`` run each statement on its own;
    ``transaction()`` yields repositories whose writes commit together or
    not at all.
    """

    inventory: InventoryRepositoryProtocol
    orders: OrderRepositoryProtocol

    def transaction(self) -> AsyncContextManager[MarketUnitOfWork]:
        ...


@runtime_checkable
class EventBusProtocol(Protocol):
    """Interface for Event Bus - no I/O imports"""

    async def publish_event(self, event) -> None:
        """Publish an event"""
        ...
