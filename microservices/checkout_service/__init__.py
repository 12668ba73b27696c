"""
Checkout Service

Checkout orchestration and fulfillment for the key marketplace.

Features:
- Reserve-then-pay checkout sessions backed by Stripe Checkout
- Idempotent fulfillment from webhooks and client polling
- Manual (USDT) orders approved by an admin
- Order history and the buyer's key vault

Port: 8260
"""

__version__ = "1.0.0"
__service_name__ = "checkout_service"
__service_port__ = 8260
