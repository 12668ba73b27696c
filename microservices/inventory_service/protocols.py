"""
Inventory Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from datetime import datetime
from typing import List, Optional, Protocol, runtime_checkable

from .models import InventoryUnit, Product, UnitState


# ============================================================================
# Custom Exceptions - defined here to avoid importing repository
# ============================================================================

class InventoryServiceError(Exception):
    """Base exception for inventory errors"""
    pass


class InventoryExhaustedError(InventoryServiceError):
    """No available unit for the product"""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} is out of stock")


class ReservationConflictError(InventoryServiceError):
    """The unit exists but was not in the state the transition required"""

    def __init__(self, unit_id: str, message: Optional[str] = None):
        self.unit_id = unit_id
        super().__init__(message or f"Unit {unit_id} is no longer available")


class UnitNotFoundError(InventoryServiceError):
    """Unit does not exist"""

    def __init__(self, unit_id: str):
        self.unit_id = unit_id
        super().__init__(f"Unit {unit_id} not found")


class UnitConsistencyError(InventoryServiceError):
    """Unit already used by a different order"""

    def __init__(self, unit_id: str, order_id: str, used_by_order_id: Optional[str]):
        self.unit_id = unit_id
        self.order_id = order_id
        self.used_by_order_id = used_by_order_id
        super().__init__(
            f"Unit {unit_id} requested by order {order_id} is already used by order {used_by_order_id}"
        )


class UnitInUseError(InventoryServiceError):
    """Unit cannot be deleted because it is reserved or used"""

    def __init__(self, unit_id: str, state: UnitState):
        self.unit_id = unit_id
        self.state = state
        super().__init__(f"Unit {unit_id} is {state.value} and cannot be deleted")


class ProductNotFoundError(InventoryServiceError):
    """Product missing or inactive"""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


# ============================================================================
# Repository Protocol
# ============================================================================

@runtime_checkable
class InventoryRepositoryProtocol(Protocol):
    """
    Interface for the inventory unit store.

    Every state-changing method is a single conditional write evaluated by
    the store and returns the updated unit, or None when the condition did
    not hold.
    """

    async def get_product(self, product_id: str) -> Optional[Product]:
        ...

    async def get_unit(self, unit_id: str) -> Optional[InventoryUnit]:
        ...

    async def get_unit_by_session(self, session_id: str) -> Optional[InventoryUnit]:
        ...

    async def find_available_unit_id(self, product_id: str) -> Optional[str]:
        ...

    async def count_available_units(self, product_id: str) -> int:
        ...

    async def reserve_unit(
        self, unit_id: str, session_id: str, reserved_at: datetime
    ) -> Optional[InventoryUnit]:
        """available -> reserved"""
        ...

    async def claim_available_unit(
        self, product_id: str, session_id: str, reserved_at: datetime
    ) -> Optional[InventoryUnit]:
        """Pick any available unit of the product and reserve it in one statement"""
        ...

    async def rebind_reservation(
        self, unit_id: str, from_session_id: str, to_session_id: str, reserved_at: datetime
    ) -> Optional[InventoryUnit]:
        """reserved{from} -> reserved{to}, restarting the reservation clock"""
        ...

    async def release_unit(self, unit_id: str) -> Optional[InventoryUnit]:
        """reserved -> available"""
        ...

    async def release_session(self, session_id: str) -> Optional[InventoryUnit]:
        """reserved{session} -> available"""
        ...

    async def consume_unit(
        self, unit_id: str, order_id: str, session_id: Optional[str] = None
    ) -> Optional[InventoryUnit]:
        """available|reserved -> used{order}"""
        ...

    async def release_expired(
        self, product_id: str, cutoff: datetime, exclude_prefix: Optional[str] = None
    ) -> int:
        """reserved (reserved_at < cutoff) -> available; returns count"""
        ...

    async def decrement_stock(self, product_id: str) -> Optional[int]:
        """stock - 1 when stock > 0; returns the new stock"""
        ...

    async def add_unit(self, product_id: str, secret_content: str) -> InventoryUnit:
        ...

    async def delete_available_unit(self, unit_id: str) -> bool:
        ...

    async def list_units(
        self,
        product_id: str,
        state: Optional[UnitState] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[InventoryUnit]:
        ...


# ============================================================================
# Event Bus Protocol
# ============================================================================

@runtime_checkable
class EventBusProtocol(Protocol):
    """Interface for Event Bus - no I/O imports"""

    async def publish_event(self, event) -> None:
        """Publish an event"""
        ...
