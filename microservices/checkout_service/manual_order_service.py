"""
Manual Order Service Business Logic

Orders paid outside the gateway (USDT transfer checked by an operator).
The unit is reserved up front exactly like a card checkout, under the hold
id ``manual_<order_id>``; the sweep leaves such holds alone until an admin
completes or cancels the order.
"""

import logging
import uuid
from typing import Optional

from microservices.inventory_service.models import MANUAL_HOLD_PREFIX
from microservices.inventory_service.protocols import ProductNotFoundError
from microservices.inventory_service.reservation_manager import ReservationManager
from microservices.order_service.events.publishers import (
    publish_order_cancelled,
    publish_order_completed,
    publish_order_created,
)
from microservices.order_service.models import Order, OrderStatus, PaymentMethod
from microservices.order_service.protocols import InvalidOrderStateError, OrderNotFoundError

from .fulfillment_service import FulfillmentService
from .protocols import MarketStoreProtocol
from .saga import Saga

logger = logging.getLogger(__name__)


def manual_hold_id(order_id: str) -> str:
    return f"{MANUAL_HOLD_PREFIX}{order_id}"


class ManualOrderService:
    """Pending orders for off-gateway payment, approved or cancelled by an admin"""

    def __init__(
        self,
        store: MarketStoreProtocol,
        reservations: ReservationManager,
        fulfillment: FulfillmentService,
        event_bus=None,
    ):
        self.store = store
        self.reservations = reservations
        self.fulfillment = fulfillment
        self.event_bus = event_bus

    async def create_order(
        self,
        user_id: str,
        product_id: str,
        payment_method: PaymentMethod = PaymentMethod.USDT,
    ) -> Order:
        """
        Reserve a unit and record a pending order for it.

        Raises:
            ValueError: card payments must go through checkout
            ProductNotFoundError: product missing or inactive
            InventoryExhaustedError: nothing left to reserve
        """
        if payment_method == PaymentMethod.CARD:
            raise ValueError("Card payments must use the checkout session flow")

        product = await self.store.inventory.get_product(product_id)
        if product is None or not product.is_active:
            raise ProductNotFoundError(product_id)

        await self.reservations.sweep_expired(product_id)

        order_id = f"order_{uuid.uuid4().hex[:12]}"
        hold_id = manual_hold_id(order_id)

        async def release_hold(_unit) -> None:
            await self.reservations.release_session(hold_id, reason="order_aborted")

        async with Saga("manual_order") as saga:
            unit = await saga.step(
                "reserve",
                self.reservations.acquire_reserved(product_id, hold_id),
                compensate=release_hold,
            )
            order = await saga.step(
                "create_order",
                self.store.orders.create_order(
                    user_id=user_id,
                    product_id=product_id,
                    total_amount=product.price,
                    currency=product.currency,
                    payment_method=payment_method,
                    status=OrderStatus.PENDING,
                    unit_id=unit.unit_id,
                    order_id=order_id,
                ),
            )

        logger.info(f"Manual order {order.order_id} created for user {user_id}, unit {unit.unit_id}")
        await publish_order_created(self.event_bus, order)
        return order

    async def complete_order(self, order_id: str) -> Order:
        """
        Approve a pending manual order and deliver its reserved unit.

        Raises:
            OrderNotFoundError, InvalidOrderStateError
        """
        order = await self._get_pending(order_id, OrderStatus.COMPLETED)
        if not order.unit_id:
            raise InvalidOrderStateError(order_id, order.status, OrderStatus.COMPLETED)

        async with self.store.transaction() as tx:
            completed = await tx.orders.update_status(order_id, OrderStatus.COMPLETED)
            await self.fulfillment.deliver(tx, completed, order.unit_id, manual_hold_id(order_id))

        logger.info(f"Manual order {order_id} completed")
        await publish_order_completed(self.event_bus, completed, order.unit_id)
        return completed

    async def cancel_order(self, order_id: str, reason: Optional[str] = None) -> Order:
        """
        Cancel a pending manual order and return its unit to the pool.

        Raises:
            OrderNotFoundError, InvalidOrderStateError
        """
        await self._get_pending(order_id, OrderStatus.CANCELLED)

        async with self.store.transaction() as tx:
            cancelled = await tx.orders.update_status(order_id, OrderStatus.CANCELLED, reason)
            released = await self.reservations.bind(tx.inventory).release_session(
                manual_hold_id(order_id), reason="order_cancelled"
            )

        logger.info(
            f"Manual order {order_id} cancelled"
            + (f", unit {released.unit_id} released" if released else "")
        )
        await publish_order_cancelled(self.event_bus, cancelled, reason)
        return cancelled

    async def _get_pending(self, order_id: str, target: OrderStatus) -> Order:
        order = await self.store.orders.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if not order.status.can_transition_to(target):
            raise InvalidOrderStateError(order_id, order.status, target)
        return order
