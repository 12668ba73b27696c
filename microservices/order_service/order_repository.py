"""
Order Repository

Data access layer for the order ledger using PostgresClient (asyncpg).
Matches schema: orders.orders, orders.deliverable_assets
"""

from typing import Optional, List, Dict, Any, Union
from datetime import datetime, timezone
from decimal import Decimal
import uuid
import logging

import asyncpg

from core.postgres_client import PostgresClient, PostgresConnection
from .models import (
    Order, OrderStatus, PaymentMethod, DeliverableAsset, AssetType, VaultItem
)
from .protocols import (
    DuplicateOrderError, DuplicateAssetError, InvalidOrderStateError, OrderNotFoundError
)

logger = logging.getLogger(__name__)

ORDERS = "orders.orders"
ASSETS = "orders.deliverable_assets"


class OrderRepository:
    """
    Repository for order data operations

    Uniqueness of external_session_id and of the asset per order is enforced
    by the database; violations surface as DuplicateOrderError and
    DuplicateAssetError.
    """

    def __init__(self, db: Union[PostgresClient, PostgresConnection]):
        self.db = db

    def with_connection(self, db: PostgresConnection) -> "OrderRepository":
        return OrderRepository(db)

    # ====================
    # Orders
    # ====================

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
        """Create a new order"""
        order_id = order_id or f"order_{uuid.uuid4().hex[:12]}"
        now = datetime.now(timezone.utc)
        completed_at = now if status == OrderStatus.COMPLETED else None

        try:
            row = await self.db.query_row(
                f"""
                INSERT INTO {ORDERS} (
                    order_id, user_id, product_id, unit_id, external_session_id,
                    payment_method, total_amount, currency, status,
                    created_at, updated_at, completed_at
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $10, $11)
                RETURNING *
                """,
                [
                    order_id, user_id, product_id, unit_id, external_session_id,
                    payment_method.value, total_amount, currency, status.value,
                    now, completed_at,
                ],
            )
        except asyncpg.UniqueViolationError as e:
            if external_session_id and e.constraint_name == "idx_orders_external_session":
                logger.info(f"Order for session {external_session_id} already exists")
                raise DuplicateOrderError(external_session_id) from e
            raise

        return self._to_order(row)

    async def get_order(self, order_id: str) -> Optional[Order]:
        """Get order by ID"""
        row = await self.db.query_row(
            f"SELECT * FROM {ORDERS} WHERE order_id = $1", [order_id]
        )
        return self._to_order(row) if row else None

    async def get_order_by_session(self, external_session_id: str) -> Optional[Order]:
        """Get order by external payment session id"""
        row = await self.db.query_row(
            f"SELECT * FROM {ORDERS} WHERE external_session_id = $1", [external_session_id]
        )
        return self._to_order(row) if row else None

    async def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        reason: Optional[str] = None,
    ) -> Order:
        """Move a pending order to a terminal status"""
        if not OrderStatus.PENDING.can_transition_to(status):
            raise ValueError(f"{status.value} is not a valid target status")

        now = datetime.now(timezone.utc)
        row = await self.db.query_row(
            f"""
            UPDATE {ORDERS}
            SET status = $2,
                updated_at = $3,
                completed_at = CASE WHEN $2 = 'completed' THEN $3 ELSE completed_at END,
                cancelled_at = CASE WHEN $2 = 'cancelled' THEN $3 ELSE cancelled_at END,
                cancellation_reason = COALESCE($4, cancellation_reason)
            WHERE order_id = $1 AND status = 'pending'
            RETURNING *
            """,
            [order_id, status.value, now, reason],
        )
        if row:
            return self._to_order(row)

        current = await self.get_order(order_id)
        if current is None:
            raise OrderNotFoundError(order_id)
        raise InvalidOrderStateError(order_id, current.status, status)

    async def list_user_orders(
        self, user_id: str, limit: int = 50, offset: int = 0
    ) -> List[Order]:
        """Orders of a user, newest first"""
        rows = await self.db.query(
            f"""
            SELECT * FROM {ORDERS}
            WHERE user_id = $1
            ORDER BY created_at DESC
            LIMIT {int(limit)} OFFSET {int(offset)}
            """,
            [user_id],
        )
        return [self._to_order(r) for r in rows]

    # ====================
    # Deliverable assets
    # ====================

    async def create_deliverable_asset(
        self,
        order_id: str,
        user_id: str,
        product_id: str,
        unit_id: str,
        content: str,
    ) -> DeliverableAsset:
        asset_id = f"asset_{uuid.uuid4().hex[:12]}"
        try:
            row = await self.db.query_row(
                f"""
                INSERT INTO {ASSETS} (asset_id, order_id, user_id, product_id, unit_id, content, asset_type)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING *
                """,
                [asset_id, order_id, user_id, product_id, unit_id, content, AssetType.KEY.value],
            )
        except asyncpg.UniqueViolationError as e:
            raise DuplicateAssetError(order_id) from e
        return self._to_asset(row)

    async def get_assets_by_order(self, order_id: str) -> List[DeliverableAsset]:
        rows = await self.db.query(
            f"SELECT * FROM {ASSETS} WHERE order_id = $1 ORDER BY created_at", [order_id]
        )
        return [self._to_asset(r) for r in rows]

    async def list_vault_items(self, user_id: str) -> List[VaultItem]:
        """Assets of the user's completed orders, newest first"""
        rows = await self.db.query(
            f"""
            SELECT a.asset_id, a.order_id, a.product_id, a.content, a.asset_type,
                   a.created_at, o.total_amount, o.currency, o.payment_method, o.completed_at
            FROM {ASSETS} a
            JOIN {ORDERS} o ON o.order_id = a.order_id
            WHERE o.user_id = $1 AND o.status = 'completed'
            ORDER BY a.created_at DESC
            """,
            [user_id],
        )
        return [
            VaultItem(
                asset_id=r["asset_id"],
                order_id=r["order_id"],
                product_id=r["product_id"],
                content=r["content"],
                asset_type=AssetType(r["asset_type"]),
                total_amount=r["total_amount"],
                currency=r["currency"],
                payment_method=PaymentMethod(r["payment_method"]),
                completed_at=r.get("completed_at"),
                created_at=r["created_at"],
            )
            for r in rows
        ]

    # ====================
    # Mapping
    # ====================

    def _to_order(self, data: Dict[str, Any]) -> Order:
        return Order(
            order_id=data["order_id"],
            user_id=data["user_id"],
            product_id=data["product_id"],
            unit_id=data.get("unit_id"),
            external_session_id=data.get("external_session_id"),
            payment_method=PaymentMethod(data["payment_method"]),
            total_amount=data["total_amount"],
            currency=data["currency"],
            status=OrderStatus(data["status"]),
            cancellation_reason=data.get("cancellation_reason"),
            created_at=data["created_at"],
            updated_at=data["updated_at"],
            completed_at=data.get("completed_at"),
            cancelled_at=data.get("cancelled_at"),
        )

    def _to_asset(self, data: Dict[str, Any]) -> DeliverableAsset:
        return DeliverableAsset(
            asset_id=data["asset_id"],
            order_id=data["order_id"],
            user_id=data["user_id"],
            product_id=data["product_id"],
            unit_id=data["unit_id"],
            content=data["content"],
            asset_type=AssetType(data["asset_type"]),
            created_at=data["created_at"],
        )
