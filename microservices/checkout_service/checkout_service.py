"""
Checkout Service Business Logic

Checkout orchestration: reserve a unit, open a hosted payment session for
it and bind the two. Each run is a saga, so a failure after the
reservation never leaves the unit withheld.
"""

import logging
import uuid
from typing import Dict, Optional

from microservices.inventory_service.models import Product
from microservices.inventory_service.protocols import (
    InventoryExhaustedError,
    ProductNotFoundError,
    ReservationConflictError,
)
from microservices.inventory_service.reservation_manager import ReservationManager

from .models import (
    CheckoutSession,
    GatewaySession,
    LineItem,
    META_PRODUCT_ID,
    META_UNIT_ID,
    META_USER_ID,
)
from .protocols import MarketStoreProtocol, PaymentGatewayError, PaymentGatewayProtocol
from .saga import Saga

logger = logging.getLogger(__name__)

HOLD_PREFIX = "hold_"


class CheckoutService:
    """
    Checkout orchestrator

    Steps per attempt: sweep expired reservations, reserve a unit under a
    provisional hold id, create the gateway session, rebind the reservation
    to the session id. Losing the hold restarts the attempt.
    """

    def __init__(
        self,
        store: MarketStoreProtocol,
        reservations: ReservationManager,
        gateway: PaymentGatewayProtocol,
        max_attempts: int = 3,
    ):
        self.store = store
        self.reservations = reservations
        self.gateway = gateway
        self.max_attempts = max(1, max_attempts)

    async def get_active_product(self, product_id: str) -> Product:
        product = await self.store.inventory.get_product(product_id)
        if product is None or not product.is_active:
            raise ProductNotFoundError(product_id)
        return product

    async def initiate_checkout(self, user_id: str, product_id: str) -> CheckoutSession:
        """
        Open a checkout session holding exactly one unit of the product.

        Raises:
            ProductNotFoundError: product missing or inactive
            InventoryExhaustedError: no unit could be reserved
            PaymentGatewayError: gateway failed; the reservation was released
        """
        product = await self.get_active_product(product_id)

        for attempt in range(1, self.max_attempts + 1):
            try:
                checkout = await self._attempt_checkout(user_id, product)
            except ReservationConflictError as e:
                logger.warning(
                    f"Checkout for product {product_id} lost its hold "
                    f"(attempt {attempt}/{self.max_attempts}): {e}"
                )
                continue

            logger.info(
                f"Checkout session {checkout.session_id} opened for user {user_id}, "
                f"unit {checkout.unit_id}"
            )
            return checkout

        raise InventoryExhaustedError(product_id)

    async def _attempt_checkout(self, user_id: str, product: Product) -> CheckoutSession:
        await self.reservations.sweep_expired(product.product_id)

        hold_id = f"{HOLD_PREFIX}{uuid.uuid4().hex}"

        async def release_hold(_unit) -> None:
            await self.reservations.release_session(hold_id, reason="checkout_aborted")

        async def expire_session(session: GatewaySession) -> None:
            await self.gateway.expire_session(session.id)

        async with Saga("checkout") as saga:
            unit = await saga.step(
                "reserve",
                self.reservations.acquire_reserved(product.product_id, hold_id),
                compensate=release_hold,
            )

            metadata = self._session_metadata(user_id, product.product_id, unit.unit_id)
            session = await saga.step(
                "create_session",
                self._create_session(product, metadata, idempotency_key=hold_id),
                compensate=expire_session,
            )
            if not session.url:
                raise PaymentGatewayError(f"Gateway returned session {session.id} without a URL")

            await saga.step(
                "bind",
                self.reservations.rebind(unit.unit_id, hold_id, session.id),
            )

        return CheckoutSession(
            session_id=session.id,
            url=session.url,
            unit_id=unit.unit_id,
            product_id=product.product_id,
        )

    async def _create_session(
        self, product: Product, metadata: Dict[str, str], idempotency_key: Optional[str]
    ) -> GatewaySession:
        line_item = LineItem(
            name=product.title,
            description=product.description or None,
            unit_amount=product.unit_amount,
            currency=product.currency,
        )
        return await self.gateway.create_session(
            line_item, metadata, idempotency_key=idempotency_key
        )

    @staticmethod
    def _session_metadata(user_id: str, product_id: str, unit_id: str) -> Dict[str, str]:
        return {
            META_USER_ID: user_id,
            META_PRODUCT_ID: product_id,
            META_UNIT_ID: unit_id,
        }
