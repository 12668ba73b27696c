"""
Checkout Service Clients

Adapters for external collaborators of the checkout service.
"""

from .stripe_gateway import StripeGateway

__all__ = ["StripeGateway"]
