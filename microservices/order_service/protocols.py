"""
Order Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import List, Optional, Protocol, runtime_checkable
from decimal import Decimal

# Import only models (no I/O dependencies)
from .models import Order, OrderStatus, PaymentMethod, DeliverableAsset, VaultItem


# ============================================================================
# Custom Exceptions - defined here to avoid importing repository
# ============================================================================

class OrderServiceError(Exception):
    """Base exception for order service errors"""
    pass


class OrderNotFoundError(OrderServiceError):
    """Order not found error"""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class DuplicateOrderError(OrderServiceError):
    """An order already exists for the external session id"""

    def __init__(self, external_session_id: Optional[str]):
        self.external_session_id = external_session_id
        super().__init__(f"Order already exists for session {external_session_id}")


class DuplicateAssetError(OrderServiceError):
    """A deliverable asset already exists for the order"""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Asset already delivered for order {order_id}")


class InvalidOrderStateError(OrderServiceError):
    """Invalid order state transition"""

    def __init__(self, order_id: str, current: OrderStatus, target: OrderStatus):
        self.order_id = order_id
        self.current = current
        self.target = target
        super().__init__(
            f"Order {order_id} cannot move from {current.value} to {target.value}"
        )


# ============================================================================
# Repository Protocol
# ============================================================================

@runtime_checkable
class OrderRepositoryProtocol(Protocol):
    """
    Interface for Order Repository.

    Implementations must provide these methods.
    Used for dependency injection to enable testing.
    """

    async def create_order(
        self,
        user_id: str,
        product_id: str,
        total_amount: Decimal,
        currency: str = "usd",
        payment_method: PaymentMethod = PaymentMethod.CARD,
        status: OrderStatus = OrderStatus.PENDING,
        external_session_id: Optional[str] = None,
        unit_id: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> Order:
        """Insert an order; raises DuplicateOrderError on session id conflict"""
        ...

    async def get_order(self, order_id: str) -> Optional[Order]:
        """Get order by ID"""
        ...

    async def get_order_by_session(self, external_session_id: str) -> Optional[Order]:
        """Get order by external payment session id"""
        ...

    async def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        reason: Optional[str] = None,
    ) -> Order:
        """pending -> status; raises InvalidOrderStateError / OrderNotFoundError"""
        ...

    async def list_user_orders(
        self, user_id: str, limit: int = 50, offset: int = 0
    ) -> List[Order]:
        """Orders of a user, newest first"""
        ...

    async def create_deliverable_asset(
        self,
        order_id: str,
        user_id: str,
        product_id: str,
        unit_id: str,
        content: str,
    ) -> DeliverableAsset:
        """Insert the delivered asset; raises DuplicateAssetError"""
        ...

    async def get_assets_by_order(self, order_id: str) -> List[DeliverableAsset]:
        ...

    async def list_vault_items(self, user_id: str) -> List[VaultItem]:
        ...


@runtime_checkable
class EventBusProtocol(Protocol):
    """Interface for Event Bus - no I/O imports"""

    async def publish_event(self, event) -> None:
        """Publish an event"""
        ...
