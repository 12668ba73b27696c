"""
Inventory Service Business Logic

Restock, deletion and listing of units. Reservation transitions live in
reservation_manager.py.
"""

import logging
from typing import Optional

from .models import InventoryUnit, UnitState, UnitListResponse
from .protocols import (
    InventoryRepositoryProtocol,
    ProductNotFoundError,
    UnitNotFoundError,
    UnitInUseError,
)
from .events.publishers import publish_unit_restocked

logger = logging.getLogger(__name__)


class InventoryService:
    """Admin-side operations on the unit pool"""

    def __init__(self, repository: InventoryRepositoryProtocol, event_bus=None):
        self.repository = repository
        self.event_bus = event_bus

    async def add_unit(self, product_id: str, secret_content: str) -> InventoryUnit:
        """Add one unit and bump the product's stock counter"""
        product = await self.repository.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)

        unit = await self.repository.add_unit(product_id, secret_content)
        await publish_unit_restocked(self.event_bus, unit.unit_id, product_id)
        return unit

    async def delete_unit(self, unit_id: str) -> None:
        """
        Delete an available unit and decrement stock.

        Raises:
            UnitNotFoundError: no such unit
            UnitInUseError: unit is reserved or used
        """
        if await self.repository.delete_available_unit(unit_id):
            return

        unit = await self.repository.get_unit(unit_id)
        if unit is None:
            raise UnitNotFoundError(unit_id)
        logger.warning(f"Refused to delete unit {unit_id} in state {unit.state.value}")
        raise UnitInUseError(unit_id, unit.state)

    async def list_units(
        self,
        product_id: str,
        state: Optional[UnitState] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> UnitListResponse:
        units = await self.repository.list_units(product_id, state=state, limit=limit, offset=offset)
        summaries = [u.to_summary() for u in units]
        return UnitListResponse(units=summaries, count=len(summaries))
