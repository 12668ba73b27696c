"""
Common/Shared Fixtures

Base ID generators used across the test layers.
"""
import uuid


def make_user_id() -> str:
    """Generate a unique user ID"""
    return f"usr_test_{uuid.uuid4().hex[:12]}"


def make_product_id() -> str:
    """Generate a unique product ID"""
    return f"prod_test_{uuid.uuid4().hex[:12]}"


def make_unit_id() -> str:
    """Generate a unique inventory unit ID"""
    return f"unit_test_{uuid.uuid4().hex[:12]}"


def make_session_id() -> str:
    """Generate a gateway-style checkout session ID"""
    return f"cs_test_{uuid.uuid4().hex[:24]}"
