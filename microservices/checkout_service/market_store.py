"""
Market Store

Postgres-backed unit of work over the inventory and order repositories.
Both live in the same database, so a completion (order insert, unit
consume, asset insert, stock decrement) commits or rolls back as one.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from core.postgres_client import PostgresClient
from microservices.inventory_service.inventory_repository import InventoryRepository
from microservices.order_service.order_repository import OrderRepository


@dataclass
class PostgresUnitOfWork:
    inventory: InventoryRepository
    orders: OrderRepository


class PostgresMarketStore:
    """Repositories over a shared PostgresClient"""

    def __init__(self, db: PostgresClient):
        self.db = db
        self.inventory = InventoryRepository(db)
        self.orders = OrderRepository(db)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PostgresUnitOfWork]:
        async with self.db.transaction() as conn:
            yield PostgresUnitOfWork(
                inventory=self.inventory.with_connection(conn),
                orders=self.orders.with_connection(conn),
            )
