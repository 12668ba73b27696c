"""
Order Service Business Logic

Read side of the order ledger: order history and the buyer's vault.
"""

import logging

from .models import OrderListResponse, OrderResponse, VaultResponse
from .protocols import OrderRepositoryProtocol

logger = logging.getLogger(__name__)


class OrderService:
    """Order history queries for the caller"""

    def __init__(self, repository: OrderRepositoryProtocol):
        self.repository = repository

    async def list_user_orders(
        self, user_id: str, limit: int = 50, offset: int = 0
    ) -> OrderListResponse:
        orders = await self.repository.list_user_orders(user_id, limit=limit, offset=offset)
        return OrderListResponse(
            orders=[OrderResponse.from_order(o) for o in orders],
            count=len(orders),
        )

    async def get_vault(self, user_id: str) -> VaultResponse:
        items = await self.repository.list_vault_items(user_id)
        return VaultResponse(items=items, count=len(items))
