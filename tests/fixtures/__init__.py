"""
Shared Test Fixtures

Centralized factories and generators used across all test layers.

Structure:
    - common.py: Base ID generators
    - generators.py: Random data generators
    - market_fixtures.py: Products, units, orders, gateway sessions
"""

# Common utilities
from .common import (
    make_user_id,
    make_product_id,
    make_unit_id,
    make_session_id,
)

# Random generators
from .generators import (
    random_license_key,
    random_license_keys,
)

# Marketplace fixtures
from .market_fixtures import (
    make_product,
    make_unit,
    make_order,
    make_gateway_session,
    make_session_metadata,
)

__all__ = [
    "make_user_id",
    "make_product_id",
    "make_unit_id",
    "make_session_id",
    "random_license_key",
    "random_license_keys",
    "make_product",
    "make_unit",
    "make_order",
    "make_gateway_session",
    "make_session_metadata",
]
