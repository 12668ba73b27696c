"""
Marketplace Fixtures

Factories for products, units, orders and gateway sessions.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional

from microservices.checkout_service.models import (
    GatewaySession,
    META_PRODUCT_ID,
    META_UNIT_ID,
    META_USER_ID,
)
from microservices.inventory_service.models import InventoryUnit, Product, UnitState
from microservices.order_service.models import Order, OrderStatus, PaymentMethod

from .common import make_product_id, make_session_id, make_unit_id, make_user_id
from .generators import random_license_key


def make_product(
    product_id: Optional[str] = None,
    title: str = "Test Game Key",
    price: Decimal = Decimal("19.99"),
    stock: int = 0,
    is_active: bool = True,
    **overrides,
) -> Product:
    """Create a Product for testing"""
    return Product(
        product_id=product_id or make_product_id(),
        title=title,
        description=overrides.pop("description", "Steam key, delivered instantly"),
        price=price,
        currency=overrides.pop("currency", "usd"),
        stock=stock,
        is_active=is_active,
        **overrides,
    )


def make_unit(
    product_id: Optional[str] = None,
    state: UnitState = UnitState.AVAILABLE,
    reserved_session_id: Optional[str] = None,
    reserved_at: Optional[datetime] = None,
    used_by_order_id: Optional[str] = None,
    **overrides,
) -> InventoryUnit:
    """Create an InventoryUnit for testing"""
    return InventoryUnit(
        unit_id=overrides.pop("unit_id", None) or make_unit_id(),
        product_id=product_id or make_product_id(),
        secret_content=overrides.pop("secret_content", None) or random_license_key(),
        state=state,
        reserved_session_id=reserved_session_id,
        reserved_at=reserved_at,
        used_by_order_id=used_by_order_id,
        created_at=overrides.pop("created_at", datetime.now(timezone.utc)),
        **overrides,
    )


def make_order(
    user_id: Optional[str] = None,
    product_id: Optional[str] = None,
    status: OrderStatus = OrderStatus.PENDING,
    payment_method: PaymentMethod = PaymentMethod.USDT,
    **overrides,
) -> Order:
    """Create an Order for testing"""
    now = datetime.now(timezone.utc)
    return Order(
        order_id=overrides.pop("order_id", None) or f"order_{uuid.uuid4().hex[:12]}",
        user_id=user_id or make_user_id(),
        product_id=product_id or make_product_id(),
        payment_method=payment_method,
        total_amount=overrides.pop("total_amount", Decimal("19.99")),
        status=status,
        created_at=overrides.pop("created_at", now),
        updated_at=overrides.pop("updated_at", now),
        **overrides,
    )


def make_gateway_session(
    session_id: Optional[str] = None,
    metadata: Optional[Dict[str, str]] = None,
    paid: bool = False,
    amount_total: Optional[int] = 1999,
    **overrides,
) -> GatewaySession:
    """Create a GatewaySession for testing"""
    session_id = session_id or make_session_id()
    return GatewaySession(
        id=session_id,
        url=overrides.pop("url", f"https://checkout.example.com/pay/{session_id}"),
        status="complete" if paid else "open",
        payment_status="paid" if paid else "unpaid",
        metadata=metadata if metadata is not None else {},
        amount_total=amount_total,
        currency=overrides.pop("currency", "usd"),
        **overrides,
    )


def make_session_metadata(user_id: str, product_id: str, unit_id: str) -> Dict[str, str]:
    """Metadata a checkout attaches to its session"""
    return {
        META_USER_ID: user_id,
        META_PRODUCT_ID: product_id,
        META_UNIT_ID: unit_id,
    }
