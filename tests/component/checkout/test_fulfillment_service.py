"""
Component Tests for FulfillmentService

A paid session becomes exactly one completed order and one delivered asset,
no matter how many times or how concurrently confirmation arrives.
"""
import asyncio
from decimal import Decimal

import pytest
import pytest_asyncio

from core.config import CheckoutConfig
from microservices.checkout_service.factory import create_market_components
from microservices.checkout_service.models import (
    CheckoutStatus,
    FulfillmentStatus,
    META_PRODUCT_ID,
    META_UNIT_ID,
    META_USER_ID,
    RejectionReason,
)
from microservices.checkout_service.protocols import (
    PaymentGatewayError,
    SessionOwnershipError,
    WebhookSignatureError,
)
from microservices.inventory_service.models import UnitState
from microservices.inventory_service.protocols import UnitConsistencyError
from microservices.order_service.models import OrderStatus, PaymentMethod

from tests.component.mocks.gateway_mock import VALID_SIGNATURE
from tests.fixtures import make_gateway_session, make_session_metadata

pytestmark = [pytest.mark.component, pytest.mark.asyncio]


@pytest_asyncio.fixture
async def checkout(components, units, user_id):
    """An open checkout session holding one unit"""
    return await components.checkout.initiate_checkout(user_id, "prod_game_key")


@pytest.fixture
def paid(checkout, gateway):
    """The checkout session, paid"""
    gateway.mark_paid(checkout.session_id)
    return checkout


def orders_for(store, session_id):
    return [o for o in store.order_rows.values() if o.external_session_id == session_id]


class TestCompleteFromConfirmation:

    async def test_unpaid_session_is_pending(self, components, store, checkout):
        """Nothing is written before the payment clears"""
        result = await components.fulfillment.complete_from_confirmation(checkout.session_id)

        assert result.status == FulfillmentStatus.PENDING
        assert orders_for(store, checkout.session_id) == []
        assert store.unit(checkout.unit_id).state == UnitState.RESERVED

    async def test_paid_session_completes_order(self, components, store, paid, user_id, keys, mock_event_bus):
        """Order, used unit, asset and stock move together"""
        result = await components.fulfillment.complete_from_confirmation(paid.session_id)

        assert result.is_completed
        order = store.order_rows[result.order_id]
        assert order.status == OrderStatus.COMPLETED
        assert order.user_id == user_id
        assert order.external_session_id == paid.session_id
        assert order.payment_method == PaymentMethod.CARD
        assert order.total_amount == Decimal("19.99")
        assert order.completed_at is not None

        unit = store.unit(paid.unit_id)
        assert unit.state == UnitState.USED
        assert unit.used_by_order_id == order.order_id

        (asset,) = store.assets_for_order(order.order_id)
        assert asset.content == unit.secret_content
        assert asset.content in keys
        assert store.stock("prod_game_key") == 2

        mock_event_bus.assert_event_published(
            "order.completed", {"order_id": order.order_id, "unit_id": paid.unit_id}
        )

    async def test_confirmation_is_idempotent(self, components, store, paid):
        """Repeated confirmation returns the same order and changes nothing"""
        first = await components.fulfillment.complete_from_confirmation(paid.session_id)
        second = await components.fulfillment.complete_from_confirmation(paid.session_id)
        third = await components.fulfillment.complete_from_confirmation(paid.session_id)

        assert first.order_id == second.order_id == third.order_id
        assert len(orders_for(store, paid.session_id)) == 1
        assert len(store.assets_for_order(first.order_id)) == 1
        assert store.stock("prod_game_key") == 2

    async def test_concurrent_confirmations_create_one_order(self, components, store, paid):
        """Webhook and polling racing each other converge on one order"""
        results = await asyncio.gather(
            *(components.fulfillment.complete_from_confirmation(paid.session_id) for _ in range(6))
        )

        assert all(r.is_completed for r in results)
        assert len({r.order_id for r in results}) == 1
        assert len(orders_for(store, paid.session_id)) == 1
        assert len(store.assets_for_order(results[0].order_id)) == 1
        assert store.stock("prod_game_key") == 2

    async def test_amount_falls_back_to_product_price(self, components, store, gateway, paid):
        """Without amount_total the product price is recorded"""
        session = gateway.sessions[paid.session_id]
        gateway.sessions[paid.session_id] = session.model_copy(update={"amount_total": None})

        result = await components.fulfillment.complete_from_confirmation(paid.session_id)

        assert store.order_rows[result.order_id].total_amount == Decimal("19.99")

    async def test_charged_amount_is_recorded(self, components, store, gateway, checkout):
        """The amount actually charged wins over the catalog price"""
        gateway.mark_paid(checkout.session_id, amount_total=1500)

        result = await components.fulfillment.complete_from_confirmation(checkout.session_id)

        assert store.order_rows[result.order_id].total_amount == Decimal("15.00")

    async def test_configured_currency_fills_missing_gateway_currency(
        self, store, gateway, units, user_id, mock_event_bus, clock
    ):
        """A charge reported without a currency is recorded in the configured one"""
        components = create_market_components(
            store, gateway, CheckoutConfig(currency="eur"), event_bus=mock_event_bus, clock=clock
        )
        checkout = await components.checkout.initiate_checkout(user_id, "prod_game_key")
        gateway.mark_paid(checkout.session_id, amount_total=1500)
        session = gateway.sessions[checkout.session_id]
        gateway.sessions[checkout.session_id] = session.model_copy(update={"currency": None})

        result = await components.fulfillment.complete_from_confirmation(checkout.session_id)

        order = store.order_rows[result.order_id]
        assert order.currency == "eur"
        assert order.total_amount == Decimal("15.00")


class TestRejections:
    """Paid sessions that cannot be fulfilled are flagged, never guessed at"""

    async def test_incomplete_metadata(self, components, store, gateway, paid, user_id, mock_event_bus):
        gateway.set_metadata(paid.session_id, {META_USER_ID: user_id})

        result = await components.fulfillment.complete_from_confirmation(paid.session_id)

        assert result.status == FulfillmentStatus.REJECTED
        assert result.reason == RejectionReason.INVALID_METADATA
        assert orders_for(store, paid.session_id) == []
        mock_event_bus.assert_event_published(
            "fulfillment.rejected", {"session_id": paid.session_id, "reason": "invalid metadata"}
        )

    async def test_unit_no_longer_reserved(self, components, store, reservations, paid):
        """Reservation gone before payment confirmed"""
        await reservations.release_session(paid.session_id)

        result = await components.fulfillment.complete_from_confirmation(paid.session_id)

        assert result.reason == RejectionReason.UNIT_NOT_RESERVED
        assert orders_for(store, paid.session_id) == []
        assert store.unit(paid.unit_id).state == UnitState.AVAILABLE

    async def test_session_never_opened_by_checkout(self, components, store, gateway, units, user_id):
        """A paid session naming a unit that no session holds"""
        session = gateway.add_session(make_gateway_session(
            metadata=make_session_metadata(user_id, "prod_game_key", "unit_1"),
            paid=True,
        ))

        result = await components.fulfillment.complete_from_confirmation(session.id)

        assert result.reason == RejectionReason.UNIT_NOT_RESERVED
        assert store.unit("unit_1").state == UnitState.AVAILABLE
        assert store.order_rows == {}

    async def test_unit_mismatch(self, components, store, gateway, paid, user_id, mock_event_bus):
        """Metadata naming a different unit than the one bound is rejected"""
        other = "unit_3" if paid.unit_id != "unit_3" else "unit_2"
        gateway.set_metadata(paid.session_id, {
            META_USER_ID: user_id,
            META_PRODUCT_ID: "prod_game_key",
            META_UNIT_ID: other,
        })

        result = await components.fulfillment.complete_from_confirmation(paid.session_id)

        assert result.reason == RejectionReason.UNIT_MISMATCH
        assert store.unit(other).state == UnitState.AVAILABLE
        assert store.unit(paid.unit_id).state == UnitState.RESERVED
        mock_event_bus.assert_event_published(
            "fulfillment.rejected", {"reason": "unit mismatch", "bound_unit_id": paid.unit_id}
        )

    async def test_unit_used_by_other_order_rolls_back(self, components, store, paid):
        """A consistency violation aborts the whole transaction"""
        unit = store.unit(paid.unit_id)
        store.unit_rows[paid.unit_id] = unit.model_copy(
            update={"state": UnitState.USED, "used_by_order_id": "order_other"}
        )

        with pytest.raises(UnitConsistencyError):
            await components.fulfillment.complete_from_confirmation(paid.session_id)

        assert orders_for(store, paid.session_id) == []
        assert store.asset_rows == {}
        assert store.stock("prod_game_key") == 3
        assert store.rollbacks == 1


class TestOwnership:

    async def test_other_user_cannot_complete(self, components, store, paid, other_user_id):
        with pytest.raises(SessionOwnershipError):
            await components.fulfillment.complete_from_confirmation(
                paid.session_id, expected_user_id=other_user_id
            )
        assert orders_for(store, paid.session_id) == []

    async def test_other_user_cannot_read_completed_order(self, components, paid, user_id, other_user_id):
        """Ownership is enforced on the idempotent path too"""
        await components.fulfillment.complete_from_confirmation(paid.session_id, expected_user_id=user_id)

        with pytest.raises(SessionOwnershipError):
            await components.fulfillment.complete_from_confirmation(
                paid.session_id, expected_user_id=other_user_id
            )

    async def test_gateway_error_propagates(self, components, gateway, checkout):
        gateway.set_retrieve_error(PaymentGatewayError("timeout", retryable=True))

        with pytest.raises(PaymentGatewayError):
            await components.fulfillment.complete_from_confirmation(checkout.session_id)


class TestSessionExpired:

    async def test_expiry_releases_reserved_unit(self, components, store, checkout):
        unit = await components.fulfillment.handle_session_expired(checkout.session_id)

        assert unit.unit_id == checkout.unit_id
        assert store.unit(checkout.unit_id).state == UnitState.AVAILABLE

    async def test_expiry_after_fulfillment_is_noop(self, components, store, paid):
        """A used unit stays with its order"""
        result = await components.fulfillment.complete_from_confirmation(paid.session_id)

        assert await components.fulfillment.handle_session_expired(paid.session_id) is None
        assert store.unit(paid.unit_id).state == UnitState.USED
        assert store.unit(paid.unit_id).used_by_order_id == result.order_id


class TestHandleWebhook:

    async def test_bad_signature_touches_nothing(self, components, store, gateway, paid):
        body = gateway.make_event_body("checkout.session.completed", paid.session_id)

        with pytest.raises(WebhookSignatureError):
            await components.fulfillment.handle_webhook(body, "t=1,v1=forged")

        assert gateway.calls("retrieve_session") == []
        assert orders_for(store, paid.session_id) == []

    async def test_payment_succeeded_completes(self, components, store, gateway, paid):
        body = gateway.make_event_body("checkout.session.completed", paid.session_id)

        ack = await components.fulfillment.handle_webhook(body, VALID_SIGNATURE)

        assert ack.received is True
        assert ack.event_kind == "payment_succeeded"
        assert ack.result.is_completed
        assert len(orders_for(store, paid.session_id)) == 1

    async def test_async_payment_succeeded_completes(self, components, store, gateway, paid):
        body = gateway.make_event_body("checkout.session.async_payment_succeeded", paid.session_id)

        ack = await components.fulfillment.handle_webhook(body, VALID_SIGNATURE)

        assert ack.result.is_completed

    async def test_redelivered_webhook_is_idempotent(self, components, store, gateway, paid):
        body = gateway.make_event_body("checkout.session.completed", paid.session_id)

        first = await components.fulfillment.handle_webhook(body, VALID_SIGNATURE)
        second = await components.fulfillment.handle_webhook(body, VALID_SIGNATURE)

        assert first.result.order_id == second.result.order_id
        assert len(orders_for(store, paid.session_id)) == 1

    async def test_session_expired_event_releases(self, components, store, gateway, checkout):
        body = gateway.make_event_body("checkout.session.expired", checkout.session_id)

        ack = await components.fulfillment.handle_webhook(body, VALID_SIGNATURE)

        assert ack.event_kind == "session_expired"
        assert store.unit(checkout.unit_id).state == UnitState.AVAILABLE

    async def test_unrelated_event_acknowledged(self, components, store, gateway, checkout):
        body = gateway.make_event_body("invoice.paid", "in_123")

        ack = await components.fulfillment.handle_webhook(body, VALID_SIGNATURE)

        assert ack.event_kind == "unrecognized"
        assert ack.result is None
        assert store.unit(checkout.unit_id).state == UnitState.RESERVED

    async def test_event_without_session_id_acknowledged(self, components, gateway, checkout):
        body = gateway.make_event_body("checkout.session.completed", None)

        ack = await components.fulfillment.handle_webhook(body, VALID_SIGNATURE)

        assert ack.event_kind == "unrecognized"


class TestCheckoutStatus:

    async def test_open_session_is_pending(self, components, checkout, user_id):
        status = await components.fulfillment.get_checkout_status(checkout.session_id, user_id)
        assert status.status == CheckoutStatus.PENDING

    async def test_paid_not_yet_fulfilled(self, components, paid, user_id):
        status = await components.fulfillment.get_checkout_status(paid.session_id, user_id)
        assert status.status == CheckoutStatus.PAID_PENDING_FULFILLMENT

    async def test_completed(self, components, paid, user_id):
        result = await components.fulfillment.complete_from_confirmation(paid.session_id)

        status = await components.fulfillment.get_checkout_status(paid.session_id, user_id)

        assert status.status == CheckoutStatus.COMPLETED
        assert status.order_id == result.order_id

    async def test_unknown_session(self, components, user_id):
        status = await components.fulfillment.get_checkout_status("cs_test_missing", user_id)
        assert status.status == CheckoutStatus.UNKNOWN

    async def test_transient_gateway_error_propagates(self, components, gateway, checkout, user_id):
        gateway.set_retrieve_error(PaymentGatewayError("rate limited", retryable=True))

        with pytest.raises(PaymentGatewayError):
            await components.fulfillment.get_checkout_status(checkout.session_id, user_id)

    async def test_other_users_session(self, components, checkout, other_user_id):
        with pytest.raises(SessionOwnershipError):
            await components.fulfillment.get_checkout_status(checkout.session_id, other_user_id)
