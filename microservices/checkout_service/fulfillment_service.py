"""
Fulfillment Service Business Logic

Turns a confirmed payment into exactly one completed order and one
delivered asset. Safe to call any number of times, concurrently, from the
webhook and from client polling: the order's unique external session id is
the idempotency key and the loser of a race returns the winner's order.
"""

import logging
from decimal import Decimal
from typing import Optional

from microservices.inventory_service.models import InventoryUnit
from microservices.inventory_service.protocols import ReservationConflictError
from microservices.inventory_service.reservation_manager import ReservationManager
from microservices.order_service.events.publishers import publish_order_completed
from microservices.order_service.models import Order, OrderStatus, PaymentMethod
from microservices.order_service.protocols import DuplicateOrderError

from .events.publishers import publish_fulfillment_rejected
from .models import (
    CheckoutStatus,
    CheckoutStatusResponse,
    FulfillmentResult,
    GatewaySession,
    META_PRODUCT_ID,
    META_UNIT_ID,
    META_USER_ID,
    PaymentSucceeded,
    RejectionReason,
    SessionExpired,
    WebhookAck,
)
from .protocols import (
    MarketStoreProtocol,
    MarketUnitOfWork,
    PaymentGatewayError,
    PaymentGatewayProtocol,
    SessionOwnershipError,
)

logger = logging.getLogger(__name__)


class FulfillmentService:
    """Fulfillment processor"""

    def __init__(
        self,
        store: MarketStoreProtocol,
        reservations: ReservationManager,
        gateway: PaymentGatewayProtocol,
        event_bus=None,
        default_currency: str = "usd",
    ):
        self.store = store
        self.reservations = reservations
        self.gateway = gateway
        self.event_bus = event_bus
        # Recorded when the gateway reports no currency
        self.default_currency = default_currency.lower()

    # ====================
    # Confirmation
    # ====================

    async def complete_from_confirmation(
        self, session_id: str, expected_user_id: Optional[str] = None
    ) -> FulfillmentResult:
        """
        Complete the order for a paid session.

        Args:
            session_id: Gateway session id (idempotency key)
            expected_user_id: When set, the session must belong to this user

        Returns:
            completed(order_id), pending() or rejected(reason)

        Raises:
            SessionOwnershipError: session belongs to another user
            PaymentGatewayError: session could not be retrieved
            UnitConsistencyError: bound unit already used by another order
        """
        existing = await self.store.orders.get_order_by_session(session_id)
        if existing is not None:
            self._check_owner(session_id, existing.user_id, expected_user_id)
            logger.debug(f"Session {session_id} already fulfilled by order {existing.order_id}")
            return FulfillmentResult.completed(existing.order_id)

        session = await self.gateway.retrieve_session(session_id)
        self._check_owner(session_id, session.metadata.get(META_USER_ID), expected_user_id)

        if not session.is_paid:
            logger.info(f"Session {session_id} not paid yet ({session.payment_status})")
            return FulfillmentResult.pending()

        user_id = session.metadata.get(META_USER_ID)
        product_id = session.metadata.get(META_PRODUCT_ID)
        unit_id = session.metadata.get(META_UNIT_ID)
        if not (user_id and product_id and unit_id):
            return await self._reject(session_id, RejectionReason.INVALID_METADATA, session)

        bound = await self.reservations.find_by_session(session_id)
        if bound is None:
            return await self._reject(session_id, RejectionReason.UNIT_NOT_RESERVED, session)
        if bound.unit_id != unit_id:
            return await self._reject(
                session_id, RejectionReason.UNIT_MISMATCH, session, bound_unit_id=bound.unit_id
            )

        total_amount, currency = await self._charged_amount(session, product_id)

        try:
            async with self.store.transaction() as tx:
                order = await tx.orders.create_order(
                    user_id=user_id,
                    product_id=product_id,
                    total_amount=total_amount,
                    currency=currency,
                    payment_method=PaymentMethod.CARD,
                    status=OrderStatus.COMPLETED,
                    external_session_id=session_id,
                    unit_id=unit_id,
                )
                await self.deliver(tx, order, unit_id, session_id)

        except DuplicateOrderError:
            winner = await self.store.orders.get_order_by_session(session_id)
            if winner is None:
                raise
            logger.info(f"Session {session_id} completed concurrently by order {winner.order_id}")
            return FulfillmentResult.completed(winner.order_id)

        except ReservationConflictError:
            # Expired, swept and re-reserved by another buyer in between
            return await self._reject(session_id, RejectionReason.UNIT_NOT_RESERVED, session)

        logger.info(f"Order {order.order_id} completed for session {session_id}, unit {unit_id}")
        await publish_order_completed(self.event_bus, order, unit_id)
        return FulfillmentResult.completed(order.order_id)

    async def deliver(
        self,
        tx: MarketUnitOfWork,
        order: Order,
        unit_id: str,
        session_id: Optional[str],
    ) -> InventoryUnit:
        """
        Consume the unit, copy its secret into the order's asset and take
        one off the stock counter, all inside the caller's transaction.
        """
        unit = await self.reservations.bind(tx.inventory).consume(
            unit_id, order.order_id, session_id=session_id
        )
        await tx.orders.create_deliverable_asset(
            order_id=order.order_id,
            user_id=order.user_id,
            product_id=order.product_id,
            unit_id=unit.unit_id,
            content=unit.secret_content,
        )

        remaining = await tx.inventory.decrement_stock(order.product_id)
        if remaining is None:
            logger.error(
                f"Stock counter for product {order.product_id} already at 0 "
                f"while completing order {order.order_id}"
            )
        return unit

    # ====================
    # Expiry and webhooks
    # ====================

    async def handle_session_expired(self, session_id: str) -> Optional[InventoryUnit]:
        """Release whatever unit the session still holds; used units are untouched"""
        return await self.reservations.release_session(session_id, reason="session_expired")

    async def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> WebhookAck:
        """
        Verify and dispatch one webhook delivery.

        Raises:
            WebhookSignatureError: nothing was read or written
        """
        event = self.gateway.verify_webhook(raw_body, signature)

        if isinstance(event, PaymentSucceeded):
            result = await self.complete_from_confirmation(event.session_id)
            return WebhookAck(event_kind=event.kind, result=result)

        if isinstance(event, SessionExpired):
            await self.handle_session_expired(event.session_id)
            return WebhookAck(event_kind=event.kind)

        logger.debug(f"Ignoring webhook event {event.event_type}")
        return WebhookAck(event_kind=event.kind)

    # ====================
    # Status
    # ====================

    async def get_checkout_status(self, session_id: str, user_id: str) -> CheckoutStatusResponse:
        order = await self.store.orders.get_order_by_session(session_id)
        if order is not None:
            self._check_owner(session_id, order.user_id, user_id)
            return CheckoutStatusResponse(status=CheckoutStatus.COMPLETED, order_id=order.order_id)

        try:
            session = await self.gateway.retrieve_session(session_id)
        except PaymentGatewayError as e:
            if e.retryable:
                raise
            logger.info(f"Session {session_id} unknown to gateway: {e}")
            return CheckoutStatusResponse(status=CheckoutStatus.UNKNOWN)

        self._check_owner(session_id, session.metadata.get(META_USER_ID), user_id)
        if session.is_paid:
            return CheckoutStatusResponse(status=CheckoutStatus.PAID_PENDING_FULFILLMENT)
        return CheckoutStatusResponse(status=CheckoutStatus.PENDING)

    # ====================
    # Helpers
    # ====================

    @staticmethod
    def _check_owner(session_id: str, owner: Optional[str], expected: Optional[str]) -> None:
        if expected is not None and owner is not None and owner != expected:
            raise SessionOwnershipError(session_id)

    async def _charged_amount(self, session: GatewaySession, product_id: str):
        if session.amount_total is not None:
            amount = (Decimal(session.amount_total) / 100).quantize(Decimal("0.01"))
            return amount, (session.currency or self.default_currency).lower()

        product = await self.store.inventory.get_product(product_id)
        if product is None:
            return Decimal("0.00"), (session.currency or self.default_currency).lower()
        return product.price, product.currency

    async def _reject(
        self,
        session_id: str,
        reason: str,
        session: GatewaySession,
        bound_unit_id: Optional[str] = None,
    ) -> FulfillmentResult:
        metadata = session.metadata
        logger.error(
            f"FULFILLMENT REJECTED for paid session {session_id}: {reason} "
            f"(user={metadata.get(META_USER_ID)}, product={metadata.get(META_PRODUCT_ID)}, "
            f"unit={metadata.get(META_UNIT_ID)}, bound_unit={bound_unit_id}) - manual action required"
        )
        await publish_fulfillment_rejected(
            self.event_bus,
            session_id=session_id,
            reason=reason,
            user_id=metadata.get(META_USER_ID),
            product_id=metadata.get(META_PRODUCT_ID),
            unit_id=metadata.get(META_UNIT_ID),
            bound_unit_id=bound_unit_id,
        )
        return FulfillmentResult.rejected(reason)
