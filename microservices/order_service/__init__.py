"""
Order Service

Order ledger: purchase attempts keyed by external payment session id, their
one-way status transitions and the assets delivered for completed orders.
"""

__version__ = "1.0.0"
__service_name__ = "order_service"
