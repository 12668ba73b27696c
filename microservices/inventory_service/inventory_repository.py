"""
Inventory Repository

Data access layer for the unit pool using PostgresClient (asyncpg).
Matches schema: inventory.inventory_units, catalog.products

Every transition is one conditional UPDATE ... RETURNING; a missing row in
the result means the condition did not hold at the moment of the write.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional, List, Dict, Any, Union

from core.postgres_client import PostgresClient, PostgresConnection

from .models import InventoryUnit, Product, UnitState
from .protocols import ProductNotFoundError

logger = logging.getLogger(__name__)

UNITS = "inventory.inventory_units"
PRODUCTS = "catalog.products"


class InventoryRepository:
    """
    Repository for inventory unit operations.

    Tables:
        - inventory.inventory_units: allocatable units and their reservation state
        - catalog.products: price and stock counter (read-only except stock)
    """

    def __init__(self, db: Union[PostgresClient, PostgresConnection]):
        """Initialize with a pool client or a transaction-bound connection"""
        self.db = db

    def with_connection(self, db: PostgresConnection) -> "InventoryRepository":
        """Same repository bound to a transaction connection"""
        return InventoryRepository(db)

    # ====================
    # Reads
    # ====================

    async def get_product(self, product_id: str) -> Optional[Product]:
        row = await self.db.query_row(
            f"SELECT * FROM {PRODUCTS} WHERE product_id = $1", [product_id]
        )
        return self._to_product(row) if row else None

    async def get_unit(self, unit_id: str) -> Optional[InventoryUnit]:
        row = await self.db.query_row(
            f"SELECT * FROM {UNITS} WHERE unit_id = $1", [unit_id]
        )
        return self._to_unit(row) if row else None

    async def get_unit_by_session(self, session_id: str) -> Optional[InventoryUnit]:
        row = await self.db.query_row(
            f"SELECT * FROM {UNITS} WHERE reserved_session_id = $1", [session_id]
        )
        return self._to_unit(row) if row else None

    async def find_available_unit_id(self, product_id: str) -> Optional[str]:
        row = await self.db.query_row(
            f"""
            SELECT unit_id FROM {UNITS}
            WHERE product_id = $1 AND state = 'available'
            LIMIT 1
            """,
            [product_id],
        )
        return row["unit_id"] if row else None

    async def count_available_units(self, product_id: str) -> int:
        row = await self.db.query_row(
            f"SELECT COUNT(*) AS n FROM {UNITS} WHERE product_id = $1 AND state = 'available'",
            [product_id],
        )
        return int(row["n"]) if row else 0

    async def list_units(
        self,
        product_id: str,
        state: Optional[UnitState] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[InventoryUnit]:
        params: List[Any] = [product_id]
        where = "product_id = $1"
        if state:
            params.append(state.value)
            where += " AND state = $2"

        rows = await self.db.query(
            f"""
            SELECT * FROM {UNITS}
            WHERE {where}
            ORDER BY created_at DESC
            LIMIT {int(limit)} OFFSET {int(offset)}
            """,
            params,
        )
        return [self._to_unit(r) for r in rows]

    # ====================
    # Conditional transitions
    # ====================

    async def reserve_unit(
        self, unit_id: str, session_id: str, reserved_at: datetime
    ) -> Optional[InventoryUnit]:
        row = await self.db.query_row(
            f"""
            UPDATE {UNITS}
            SET state = 'reserved', reserved_session_id = $2, reserved_at = $3
            WHERE unit_id = $1 AND state = 'available'
            RETURNING *
            """,
            [unit_id, session_id, reserved_at],
        )
        return self._to_unit(row) if row else None

    async def claim_available_unit(
        self, product_id: str, session_id: str, reserved_at: datetime
    ) -> Optional[InventoryUnit]:
        # SKIP LOCKED lets concurrent claimers pass over a row another
        # transaction is reserving instead of queueing on it.
        row = await self.db.query_row(
            f"""
            UPDATE {UNITS}
            SET state = 'reserved', reserved_session_id = $2, reserved_at = $3
            WHERE unit_id = (
                SELECT unit_id FROM {UNITS}
                WHERE product_id = $1 AND state = 'available'
                ORDER BY created_at
                LIMIT 1
                FOR UPDATE SKIP LOCKED
            )
            AND state = 'available'
            RETURNING *
            """,
            [product_id, session_id, reserved_at],
        )
        return self._to_unit(row) if row else None

    async def rebind_reservation(
        self, unit_id: str, from_session_id: str, to_session_id: str, reserved_at: datetime
    ) -> Optional[InventoryUnit]:
        row = await self.db.query_row(
            f"""
            UPDATE {UNITS}
            SET reserved_session_id = $3, reserved_at = $4
            WHERE unit_id = $1 AND state = 'reserved' AND reserved_session_id = $2
            RETURNING *
            """,
            [unit_id, from_session_id, to_session_id, reserved_at],
        )
        return self._to_unit(row) if row else None

    async def release_unit(self, unit_id: str) -> Optional[InventoryUnit]:
        row = await self.db.query_row(
            f"""
            UPDATE {UNITS}
            SET state = 'available', reserved_session_id = NULL, reserved_at = NULL
            WHERE unit_id = $1 AND state = 'reserved'
            RETURNING *
            """,
            [unit_id],
        )
        return self._to_unit(row) if row else None

    async def release_session(self, session_id: str) -> Optional[InventoryUnit]:
        row = await self.db.query_row(
            f"""
            UPDATE {UNITS}
            SET state = 'available', reserved_session_id = NULL, reserved_at = NULL
            WHERE reserved_session_id = $1 AND state = 'reserved'
            RETURNING *
            """,
            [session_id],
        )
        return self._to_unit(row) if row else None

    async def consume_unit(
        self, unit_id: str, order_id: str, session_id: Optional[str] = None
    ) -> Optional[InventoryUnit]:
        row = await self.db.query_row(
            f"""
            UPDATE {UNITS}
            SET state = 'used',
                used_by_order_id = $2,
                reserved_session_id = COALESCE(reserved_session_id, $3)
            WHERE unit_id = $1
              AND (
                state = 'available'
                OR (state = 'reserved' AND ($3::text IS NULL OR reserved_session_id = $3))
              )
            RETURNING *
            """,
            [unit_id, order_id, session_id],
        )
        return self._to_unit(row) if row else None

    async def release_expired(
        self, product_id: str, cutoff: datetime, exclude_prefix: Optional[str] = None
    ) -> int:
        return await self.db.execute(
            f"""
            UPDATE {UNITS}
            SET state = 'available', reserved_session_id = NULL, reserved_at = NULL
            WHERE product_id = $1
              AND state = 'reserved'
              AND reserved_at < $2
              AND ($3::text IS NULL OR left(reserved_session_id, length($3)) <> $3)
            """,
            [product_id, cutoff, exclude_prefix],
        )

    async def decrement_stock(self, product_id: str) -> Optional[int]:
        row = await self.db.query_row(
            f"""
            UPDATE {PRODUCTS}
            SET stock = stock - 1
            WHERE product_id = $1 AND stock > 0
            RETURNING stock
            """,
            [product_id],
        )
        return int(row["stock"]) if row else None

    # ====================
    # Restock / deletion
    # ====================

    async def add_unit(self, product_id: str, secret_content: str) -> InventoryUnit:
        unit_id = f"unit_{uuid.uuid4().hex[:16]}"
        async with self.db.transaction() as tx:
            bumped = await tx.execute(
                f"UPDATE {PRODUCTS} SET stock = stock + 1 WHERE product_id = $1",
                [product_id],
            )
            if not bumped:
                raise ProductNotFoundError(product_id)

            row = await tx.query_row(
                f"""
                INSERT INTO {UNITS} (unit_id, product_id, secret_content, state)
                VALUES ($1, $2, $3, 'available')
                RETURNING *
                """,
                [unit_id, product_id, secret_content],
            )
        logger.info(f"Added unit {unit_id} to product {product_id}")
        return self._to_unit(row)

    async def delete_available_unit(self, unit_id: str) -> bool:
        async with self.db.transaction() as tx:
            row = await tx.query_row(
                f"DELETE FROM {UNITS} WHERE unit_id = $1 AND state = 'available' RETURNING product_id",
                [unit_id],
            )
            if not row:
                return False
            await tx.execute(
                f"UPDATE {PRODUCTS} SET stock = stock - 1 WHERE product_id = $1 AND stock > 0",
                [row["product_id"]],
            )
        logger.info(f"Deleted unit {unit_id}")
        return True

    # ====================
    # Mapping
    # ====================

    def _to_unit(self, data: Dict[str, Any]) -> InventoryUnit:
        return InventoryUnit(
            unit_id=data["unit_id"],
            product_id=data["product_id"],
            secret_content=data["secret_content"],
            state=UnitState(data["state"]),
            reserved_session_id=data.get("reserved_session_id"),
            reserved_at=data.get("reserved_at"),
            used_by_order_id=data.get("used_by_order_id"),
            created_at=data.get("created_at"),
        )

    def _to_product(self, data: Dict[str, Any]) -> Product:
        return Product(
            product_id=data["product_id"],
            title=data["title"],
            description=data.get("description") or "",
            price=data["price"],
            currency=data.get("currency") or "usd",
            stock=data.get("stock", 0),
            is_active=data.get("is_active", True),
        )
