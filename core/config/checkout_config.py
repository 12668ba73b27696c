#!/usr/bin/env python3
"""Checkout configuration

Reservation policy and payment gateway (Stripe) settings.
"""
import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class CheckoutConfig:
    """Reservation and payment gateway settings"""

    # ===========================================
    # Reservations
    # ===========================================
    # Must exceed the gateway's own session expiry
    reservation_ttl_minutes: int = 30
    reservation_max_attempts: int = 3

    # ===========================================
    # Payment gateway
    # ===========================================
    gateway_retry_attempts: int = 3
    # Stripe accepts 30 minutes to 24 hours
    session_lifetime_minutes: int = 30
    currency: str = "usd"
    success_url: str = "http://localhost:5000/checkout/success?session_id={CHECKOUT_SESSION_ID}"
    cancel_url: str = "http://localhost:5000/products"
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_webhook_tolerance: int = 300

    def __post_init__(self):
        if self.reservation_ttl_minutes < self.session_lifetime_minutes:
            raise ValueError(
                f"reservation_ttl_minutes ({self.reservation_ttl_minutes}) must be at least "
                f"session_lifetime_minutes ({self.session_lifetime_minutes})"
            )

    @property
    def session_lifetime(self) -> timedelta:
        return timedelta(minutes=self.session_lifetime_minutes)

    @property
    def reservation_ttl(self) -> timedelta:
        return timedelta(minutes=self.reservation_ttl_minutes)

    @classmethod
    def from_env(cls) -> 'CheckoutConfig':
        """Load checkout config from environment variables"""
        return cls(
            reservation_ttl_minutes=_int(os.getenv("RESERVATION_TTL_MINUTES", "30"), 30),
            reservation_max_attempts=_int(os.getenv("RESERVATION_MAX_ATTEMPTS", "3"), 3),
            gateway_retry_attempts=_int(os.getenv("GATEWAY_RETRY_ATTEMPTS", "3"), 3),
            session_lifetime_minutes=_int(os.getenv("CHECKOUT_SESSION_LIFETIME_MINUTES", "30"), 30),
            currency=os.getenv("CHECKOUT_CURRENCY", "usd").lower(),
            success_url=os.getenv(
                "CHECKOUT_SUCCESS_URL",
                "http://localhost:5000/checkout/success?session_id={CHECKOUT_SESSION_ID}",
            ),
            cancel_url=os.getenv("CHECKOUT_CANCEL_URL", "http://localhost:5000/products"),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET"),
            stripe_webhook_tolerance=_int(os.getenv("STRIPE_WEBHOOK_TOLERANCE", "300"), 300),
        )
