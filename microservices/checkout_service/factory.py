"""
Checkout Service Factory

Factory functions for wiring the marketplace components.
create_market_components() is pure and takes already-built collaborators,
so tests hand it in-memory stores and a fake gateway. The create_* helpers
below it are the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_market_components, create_postgres_store, create_stripe_gateway

    store = await create_postgres_store(settings)
    components = create_market_components(store, create_stripe_gateway(settings.checkout), settings.checkout)
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from core.config import CheckoutConfig, MarketConfig
from microservices.inventory_service.inventory_service import InventoryService
from microservices.inventory_service.reservation_manager import ReservationManager
from microservices.order_service.order_service import OrderService

from .checkout_service import CheckoutService
from .fulfillment_service import FulfillmentService
from .manual_order_service import ManualOrderService
from .protocols import MarketStoreProtocol, PaymentGatewayProtocol


@dataclass
class MarketComponents:
    """Everything the HTTP layer needs, wired together"""
    store: MarketStoreProtocol
    gateway: PaymentGatewayProtocol
    reservations: ReservationManager
    checkout: CheckoutService
    fulfillment: FulfillmentService
    manual_orders: ManualOrderService
    orders: OrderService
    inventory: InventoryService
    event_bus: object = None


def create_market_components(
    store: MarketStoreProtocol,
    gateway: PaymentGatewayProtocol,
    config: Optional[CheckoutConfig] = None,
    event_bus=None,
    clock: Optional[Callable[[], datetime]] = None,
) -> MarketComponents:
    """
    Wire services over a store and a gateway.

    Args:
        store: Unit-of-work store for units and orders
        gateway: Payment gateway
        config: Reservation policy (defaults when omitted)
        event_bus: Optional event bus
        clock: Optional clock for the reservation manager

    Returns:
        MarketComponents
    """
    config = config or CheckoutConfig()

    reservations = ReservationManager(
        store.inventory,
        reservation_ttl=config.reservation_ttl,
        max_attempts=config.reservation_max_attempts,
        clock=clock,
        event_bus=event_bus,
    )
    fulfillment = FulfillmentService(
        store, reservations, gateway, event_bus=event_bus, default_currency=config.currency
    )

    return MarketComponents(
        store=store,
        gateway=gateway,
        reservations=reservations,
        checkout=CheckoutService(
            store,
            reservations,
            gateway,
            max_attempts=config.reservation_max_attempts,
        ),
        fulfillment=fulfillment,
        manual_orders=ManualOrderService(store, reservations, fulfillment, event_bus=event_bus),
        orders=OrderService(store.orders),
        inventory=InventoryService(store.inventory, event_bus=event_bus),
        event_bus=event_bus,
    )


def create_stripe_gateway(config: CheckoutConfig) -> PaymentGatewayProtocol:
    """Stripe-backed gateway from checkout config"""
    from .clients.stripe_gateway import StripeGateway

    return StripeGateway(
        api_key=config.stripe_secret_key,
        webhook_secret=config.stripe_webhook_secret,
        success_url=config.success_url,
        cancel_url=config.cancel_url,
        retry_attempts=config.gateway_retry_attempts,
        webhook_tolerance=config.stripe_webhook_tolerance,
        session_lifetime=config.session_lifetime,
    )


async def create_postgres_store(settings: MarketConfig) -> MarketStoreProtocol:
    """
    Connect to Postgres and build the store.

    Applies the SQL migrations first when AUTO_MIGRATE is enabled.
    """
    from core.postgres_client import create_postgres_client
    from .market_store import PostgresMarketStore

    db = create_postgres_client(settings.service_name, settings.infra)
    await db.connect()

    if settings.infra.auto_migrate:
        await db.run_migrations(migration_paths())

    return PostgresMarketStore(db)


def migration_paths():
    """Migration files in dependency order (catalog/inventory before orders)"""
    from pathlib import Path

    root = Path(__file__).resolve().parent.parent
    paths = []
    for service in ("inventory_service", "order_service"):
        paths.extend(sorted((root / service / "migrations").glob("*.sql")))
    return paths
