"""
Component Test Layer Configuration

Services run over the in-memory market store and the mock payment gateway;
nothing here touches PostgreSQL, NATS or Stripe.

Structure:
    tests/component/
    ├── inventory/   Reservation manager, restock/delete
    ├── checkout/    Checkout, fulfillment, manual orders, HTTP surface
    ├── order/       Order history and vault
    └── mocks/       Mock implementations

Usage:
    pytest tests/component -v
    pytest tests/component/checkout -v
"""
import os
import sys
from typing import List

import pytest

# Set testing environment BEFORE any imports
os.environ["ENV"] = "testing"
os.environ["ENVIRONMENT"] = "testing"
os.environ["NATS_ENABLED"] = "false"

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from core.config import CheckoutConfig
from microservices.checkout_service.factory import MarketComponents, create_market_components
from microservices.inventory_service.models import InventoryUnit, Product
from microservices.inventory_service.reservation_manager import ReservationManager

from tests.component.mocks import (
    FakeClock,
    InMemoryMarketStore,
    MockEventBus,
    MockPaymentGateway,
)
from tests.fixtures import random_license_keys


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line(
        "markers", "component: marks tests as component tests"
    )


# =============================================================================
# Infrastructure Mocks
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    """Controllable clock shared by the store and the reservation manager"""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryMarketStore:
    """In-memory units and orders"""
    return InMemoryMarketStore(clock)


@pytest.fixture
def gateway() -> MockPaymentGateway:
    """Mock payment gateway"""
    return MockPaymentGateway()


@pytest.fixture
def mock_event_bus() -> MockEventBus:
    """Mock NATS event bus"""
    return MockEventBus()


@pytest.fixture
def checkout_config() -> CheckoutConfig:
    """Default reservation policy"""
    return CheckoutConfig(reservation_ttl_minutes=30, reservation_max_attempts=3)


# =============================================================================
# Wired Services
# =============================================================================

@pytest.fixture
def components(
    store: InMemoryMarketStore,
    gateway: MockPaymentGateway,
    checkout_config: CheckoutConfig,
    mock_event_bus: MockEventBus,
    clock: FakeClock,
) -> MarketComponents:
    """Every service wired over the in-memory store"""
    return create_market_components(
        store, gateway, checkout_config, event_bus=mock_event_bus, clock=clock
    )


@pytest.fixture
def reservations(
    store: InMemoryMarketStore, clock: FakeClock, mock_event_bus: MockEventBus
) -> ReservationManager:
    """Stand-alone reservation manager over the in-memory inventory"""
    return ReservationManager(
        store.inventory,
        reservation_ttl=CheckoutConfig().reservation_ttl,
        max_attempts=3,
        clock=clock,
        event_bus=mock_event_bus,
    )


# =============================================================================
# Seeded Catalog
# =============================================================================

@pytest.fixture
def product(store: InMemoryMarketStore) -> Product:
    """Active product with no units"""
    return store.seed_product("prod_game_key", title="Game Key", price="19.99")


@pytest.fixture
def keys() -> List[str]:
    """Three distinct license keys"""
    return random_license_keys(3)


@pytest.fixture
def units(store: InMemoryMarketStore, product: Product, keys: List[str]) -> List[InventoryUnit]:
    """Three available units of the product (stock = 3)"""
    return [
        store.seed_unit(product.product_id, key, unit_id=f"unit_{i}")
        for i, key in enumerate(keys, start=1)
    ]


@pytest.fixture
def single_unit(store: InMemoryMarketStore, product: Product) -> InventoryUnit:
    """Exactly one available unit of the product (stock = 1)"""
    return store.seed_unit(product.product_id, "KEY-1", unit_id="unit_1")
