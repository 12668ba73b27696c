"""
Checkout Microservice

Responsibilities:
- Checkout sessions backed by reserved inventory units
- Payment webhooks and client polling driving idempotent fulfillment
- Manual-payment orders with admin approval
- Order history, the buyer's vault and unit restock for admins
"""

from fastapi import FastAPI, HTTPException, Depends, Header, Request, Query, Path, Body, status
from fastapi.responses import JSONResponse, Response
import uvicorn
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from core.auth_dependencies import require_user, require_internal_service
from core.config import get_settings
from core.logger import setup_service_logger
from core.nats_client import get_event_bus

from microservices.inventory_service.models import AddUnitRequest, UnitListResponse, UnitState, UnitSummary
from microservices.inventory_service.protocols import (
    InventoryExhaustedError,
    ProductNotFoundError,
    UnitConsistencyError,
    UnitInUseError,
    UnitNotFoundError,
)
from microservices.order_service.models import (
    CancelOrderRequest,
    ManualOrderRequest,
    OrderListResponse,
    OrderResponse,
    VaultResponse,
)
from microservices.order_service.protocols import InvalidOrderStateError, OrderNotFoundError

from . import __version__
from .factory import MarketComponents, create_market_components, create_postgres_store, create_stripe_gateway
from .models import (
    CheckoutSessionResponse,
    CheckoutStatusResponse,
    CompleteCheckoutRequest,
    CompleteCheckoutResponse,
    CreateCheckoutSessionRequest,
    FulfillmentStatus,
    HealthResponse,
    WebhookAck,
)
from .protocols import PaymentGatewayError, SessionOwnershipError, WebhookSignatureError

settings = get_settings()

# Setup loggers (use actual service name)
logger = setup_service_logger(settings.service_name)


class CheckoutMicroservice:
    """Checkout microservice core class"""

    def __init__(self):
        self.components: Optional[MarketComponents] = None
        self.event_bus = None
        self.db = None

    async def initialize(self):
        """Connect infrastructure and wire services"""
        try:
            self.event_bus = await get_event_bus(settings.service_name, settings.infra)
            if self.event_bus:
                logger.info("Event bus initialized successfully")
        except Exception as e:
            logger.warning(f"Failed to initialize event bus: {e}. Continuing without event publishing.")
            self.event_bus = None

        store = await create_postgres_store(settings)
        self.db = store.db
        self.components = create_market_components(
            store,
            create_stripe_gateway(settings.checkout),
            settings.checkout,
            event_bus=self.event_bus,
        )
        logger.info("Checkout microservice initialized successfully")

    async def shutdown(self):
        """Shutdown the microservice"""
        try:
            if self.event_bus:
                await self.event_bus.close()
                logger.info("Event bus closed")
            if self.db:
                await self.db.close()
            logger.info("Checkout microservice shutdown completed")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")


def create_app(components: Optional[MarketComponents] = None) -> FastAPI:
    """
    Build the FastAPI application.

    When components are given they are used as-is and the lifespan does not
    touch infrastructure (tests); otherwise they are created on startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        microservice = None
        if app.state.components is None:
            microservice = CheckoutMicroservice()
            await microservice.initialize()
            app.state.components = microservice.components
            app.state.db = microservice.db

        yield

        if microservice is not None:
            await microservice.shutdown()

    app = FastAPI(
        title="Checkout Service",
        description="Key inventory reservation, checkout and fulfillment microservice",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.components = components
    app.state.db = None

    _register_exception_handlers(app)
    _register_routes(app)
    return app


# Dependency injection
def get_components(request: Request) -> MarketComponents:
    """Get wired components"""
    components = request.app.state.components
    if components is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Checkout service not initialized"
        )
    return components


# ==================== Error mapping ====================

ERROR_STATUS = [
    (ProductNotFoundError, status.HTTP_404_NOT_FOUND),
    (OrderNotFoundError, status.HTTP_404_NOT_FOUND),
    (UnitNotFoundError, status.HTTP_404_NOT_FOUND),
    (InventoryExhaustedError, status.HTTP_409_CONFLICT),
    (InvalidOrderStateError, status.HTTP_409_CONFLICT),
    (UnitInUseError, status.HTTP_409_CONFLICT),
    (SessionOwnershipError, status.HTTP_403_FORBIDDEN),
    (WebhookSignatureError, status.HTTP_400_BAD_REQUEST),
    (PaymentGatewayError, status.HTTP_502_BAD_GATEWAY),
]


def _register_exception_handlers(app: FastAPI) -> None:
    def make_handler(code: int):
        async def handler(request: Request, exc: Exception):
            detail = "out of stock" if isinstance(exc, InventoryExhaustedError) else str(exc)
            if code >= 500:
                logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")
            else:
                logger.info(f"{type(exc).__name__} on {request.url.path}: {exc}")
            return JSONResponse(status_code=code, content={"detail": detail})
        return handler

    for exc_type, code in ERROR_STATUS:
        app.add_exception_handler(exc_type, make_handler(code))

    @app.exception_handler(UnitConsistencyError)
    async def consistency_exception_handler(request: Request, exc: UnitConsistencyError):
        logger.error(f"Inventory consistency error on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Inventory consistency error"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler"""
        logger.error(f"Unhandled exception in {request.url}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error occurred"},
        )


# ==================== Routes ====================

def _register_routes(app: FastAPI) -> None:

    # Health check endpoints
    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """Service health check"""
        database = None
        db = request.app.state.db
        if db is not None:
            health = await db.health_check()
            database = "connected" if health.get("healthy") else "disconnected"

        components = request.app.state.components
        event_bus = components.event_bus if components else None
        return HealthResponse(
            status="healthy" if components is not None else "starting",
            service=settings.service_name,
            version=__version__,
            database=database,
            event_bus="connected" if event_bus is not None and getattr(event_bus, "is_connected", False) else "disabled",
            timestamp=datetime.now(timezone.utc),
        )

    # Checkout endpoints

    @app.post("/checkout/session", response_model=CheckoutSessionResponse)
    async def create_checkout_session(
        request: CreateCheckoutSessionRequest,
        user_id: str = Depends(require_user),
        components: MarketComponents = Depends(get_components),
    ):
        """Reserve a unit and open a hosted payment session for it"""
        checkout = await components.checkout.initiate_checkout(user_id, request.product_id)
        return CheckoutSessionResponse(url=checkout.url, session_id=checkout.session_id)

    @app.post("/checkout/complete", response_model=CompleteCheckoutResponse, response_model_exclude_none=True)
    async def complete_checkout(
        request: CompleteCheckoutRequest,
        user_id: str = Depends(require_user),
        components: MarketComponents = Depends(get_components),
    ):
        """Client-driven confirmation (fallback for a missed webhook)"""
        result = await components.fulfillment.complete_from_confirmation(
            request.session_id, expected_user_id=user_id
        )
        if result.status == FulfillmentStatus.COMPLETED:
            return CompleteCheckoutResponse(success=True, order_id=result.order_id)
        if result.status == FulfillmentStatus.PENDING:
            return CompleteCheckoutResponse(success=False, pending=True)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=result.reason)

    @app.get("/checkout/status/{session_id}", response_model=CheckoutStatusResponse, response_model_exclude_none=True)
    async def checkout_status(
        session_id: str = Path(..., description="Gateway session ID"),
        user_id: str = Depends(require_user),
        components: MarketComponents = Depends(get_components),
    ):
        """Where a checkout session stands"""
        return await components.fulfillment.get_checkout_status(session_id, user_id)

    @app.post("/webhooks/payment", response_model=WebhookAck)
    async def payment_webhook(
        request: Request,
        stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
        components: MarketComponents = Depends(get_components),
    ):
        """
        Payment provider webhook.

        The body is read raw and handed to signature verification untouched.
        Unexpected failures return 500 so the provider redelivers.
        """
        payload = await request.body()
        return await components.fulfillment.handle_webhook(payload, stripe_signature)

    # Manual-payment orders and history

    @app.post("/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
    async def create_manual_order(
        request: ManualOrderRequest,
        user_id: str = Depends(require_user),
        components: MarketComponents = Depends(get_components),
    ):
        """Create a pending order paid outside the gateway"""
        try:
            order = await components.manual_orders.create_order(
                user_id, request.product_id, request.payment_method
            )
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        return OrderResponse.from_order(order)

    @app.get("/orders/my", response_model=OrderListResponse)
    async def list_my_orders(
        limit: int = Query(50, ge=1, le=200),
        offset: int = Query(0, ge=0),
        user_id: str = Depends(require_user),
        components: MarketComponents = Depends(get_components),
    ):
        """Caller's orders, newest first"""
        return await components.orders.list_user_orders(user_id, limit=limit, offset=offset)

    @app.get("/vault", response_model=VaultResponse)
    async def get_vault(
        user_id: str = Depends(require_user),
        components: MarketComponents = Depends(get_components),
    ):
        """Delivered keys of the caller's completed orders"""
        return await components.orders.get_vault(user_id)

    # Admin endpoints

    @app.post("/admin/orders/{order_id}/complete", response_model=OrderResponse)
    async def admin_complete_order(
        order_id: str = Path(..., description="Order ID"),
        _: str = Depends(require_internal_service),
        components: MarketComponents = Depends(get_components),
    ):
        """Approve a pending manual order"""
        order = await components.manual_orders.complete_order(order_id)
        return OrderResponse.from_order(order)

    @app.post("/admin/orders/{order_id}/cancel", response_model=OrderResponse)
    async def admin_cancel_order(
        order_id: str = Path(..., description="Order ID"),
        request: Optional[CancelOrderRequest] = Body(None),
        _: str = Depends(require_internal_service),
        components: MarketComponents = Depends(get_components),
    ):
        """Cancel a pending manual order and free its unit"""
        reason = request.reason if request else None
        order = await components.manual_orders.cancel_order(order_id, reason)
        return OrderResponse.from_order(order)

    @app.post("/admin/inventory/units", response_model=UnitSummary, status_code=status.HTTP_201_CREATED)
    async def admin_add_unit(
        request: AddUnitRequest,
        _: str = Depends(require_internal_service),
        components: MarketComponents = Depends(get_components),
    ):
        """Restock one unit"""
        unit = await components.inventory.add_unit(request.product_id, request.secret_content)
        return unit.to_summary()

    @app.get("/admin/inventory/units", response_model=UnitListResponse)
    async def admin_list_units(
        product_id: str = Query(..., min_length=1),
        state: Optional[UnitState] = Query(None),
        limit: int = Query(100, ge=1, le=500),
        offset: int = Query(0, ge=0),
        _: str = Depends(require_internal_service),
        components: MarketComponents = Depends(get_components),
    ):
        """Units of a product without their secrets"""
        return await components.inventory.list_units(product_id, state=state, limit=limit, offset=offset)

    @app.delete("/admin/inventory/units/{unit_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def admin_delete_unit(
        unit_id: str = Path(..., description="Unit ID"),
        _: str = Depends(require_internal_service),
        components: MarketComponents = Depends(get_components),
    ):
        """Delete an available unit"""
        await components.inventory.delete_unit(unit_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "microservices.checkout_service.main:app",
        host="0.0.0.0",
        port=settings.service_port,
        log_level=settings.logging.log_level.lower(),
    )
