"""
Root conftest.py - shared fixtures for all test layers.

Test Layers:
    - integration/: Repository and flow tests against a real PostgreSQL
    - component/  : Service and HTTP tests over in-memory stores
    - unit/       : Pure logic (models, parsing, saga, gateway adapter)
"""
import os
import sys

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

# Must be set before core.config is imported: selects test.env, no NATS
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("NATS_ENABLED", "false")

from tests.fixtures import make_user_id


@pytest.fixture
def user_id() -> str:
    """A fresh buyer id"""
    return make_user_id()


@pytest.fixture
def other_user_id() -> str:
    """A second buyer id"""
    return make_user_id()
