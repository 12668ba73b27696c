#!/usr/bin/env python3
"""
Integration test fixtures

Runs the repositories and services against a real PostgreSQL.
Connection settings come from the POSTGRES_* environment variables;
every test is skipped when the database is unreachable.
"""
import asyncio
import os
import sys
from decimal import Decimal

import asyncpg
import pytest
import pytest_asyncio

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../.."))

from core.config import InfraConfig
from core.postgres_client import create_postgres_client
from microservices.checkout_service.factory import create_market_components, migration_paths
from microservices.checkout_service.market_store import PostgresMarketStore

from tests.component.mocks import MockEventBus, MockPaymentGateway

TABLES = (
    "orders.deliverable_assets",
    "orders.orders",
    "inventory.inventory_units",
    "catalog.products",
)


@pytest_asyncio.fixture
async def db():
    """Migrated database, emptied before each test"""
    client = create_postgres_client("checkout_service_test", InfraConfig.from_env())
    try:
        await client.connect()
    except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as e:
        pytest.skip(f"PostgreSQL not available: {e}")

    await client.run_migrations(migration_paths())
    await client.execute(f"TRUNCATE {', '.join(TABLES)}")
    yield client
    await client.close()


@pytest.fixture
def store(db) -> PostgresMarketStore:
    return PostgresMarketStore(db)


@pytest.fixture
def gateway() -> MockPaymentGateway:
    return MockPaymentGateway()


@pytest.fixture
def mock_event_bus() -> MockEventBus:
    return MockEventBus()


@pytest.fixture
def components(store, gateway, mock_event_bus):
    return create_market_components(store, gateway, event_bus=mock_event_bus)


@pytest_asyncio.fixture
async def product(db):
    """Active product with no units yet"""
    await db.execute(
        """
        INSERT INTO catalog.products (product_id, title, price, currency, stock)
        VALUES ($1, $2, $3, 'usd', 0)
        """,
        ["prod_game_key", "Game Key", Decimal("19.99")],
    )
    return "prod_game_key"


@pytest_asyncio.fixture
async def units(store, product):
    """Three available units, oldest first"""
    return [await store.inventory.add_unit(product, f"KEY-{i}") for i in range(1, 4)]
