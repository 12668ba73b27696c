"""
Component Test Mocks

Shared mock implementations for component testing.
These mocks replace real I/O dependencies (database, NATS, payment gateway).
"""

from .nats_mock import MockEventBus
from .market_mock import (
    FakeClock,
    InMemoryInventoryRepository,
    InMemoryMarketStore,
    InMemoryOrderRepository,
)
from .gateway_mock import MockPaymentGateway

__all__ = [
    'MockEventBus',
    'FakeClock',
    'InMemoryInventoryRepository',
    'InMemoryMarketStore',
    'InMemoryOrderRepository',
    'MockPaymentGateway',
]
