"""
Inventory Service

Pool of allocatable digital-asset units (license keys, credentials) and the
reservation state machine that hands them out.

Features:
- Atomic claim/reserve/release/consume transitions on units
- Lazy per-product expiry of stale reservations
- Restock and deletion of unused units with stock counter upkeep
"""

__version__ = "1.0.0"
__service_name__ = "inventory_service"
