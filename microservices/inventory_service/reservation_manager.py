"""
Reservation Manager

Atomic state transitions on inventory units. Every method delegates to a
single conditional write in the repository; this class only interprets the
outcome (applied, conflict, missing) and bounds the retries on lost races.
No in-process lock is taken anywhere.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .models import InventoryUnit, UnitState, MANUAL_HOLD_PREFIX
from .protocols import (
    InventoryRepositoryProtocol,
    InventoryExhaustedError,
    ReservationConflictError,
    UnitNotFoundError,
    UnitConsistencyError,
)
from .events.publishers import (
    publish_unit_reserved,
    publish_unit_released,
    publish_reservations_swept,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReservationManager:
    """
    Reservation state machine over the inventory unit store.

    available -> reserved -> used, reserved -> available, available -> used.
    used is terminal.
    """

    def __init__(
        self,
        repository: InventoryRepositoryProtocol,
        reservation_ttl: timedelta = timedelta(minutes=30),
        max_attempts: int = 3,
        clock: Optional[Callable[[], datetime]] = None,
        event_bus=None,
    ):
        """
        Args:
            repository: Inventory unit store
            reservation_ttl: Age after which a reservation is reclaimable
            max_attempts: Bound on retries after a lost race
            clock: Returns the current (tz-aware) time; injectable for tests
            event_bus: Optional event bus for inventory.* events
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.repository = repository
        self.reservation_ttl = reservation_ttl
        self.max_attempts = max_attempts
        self.clock = clock or utcnow
        self.event_bus = event_bus

    def bind(self, repository: InventoryRepositoryProtocol) -> "ReservationManager":
        """
        Same policy over another repository (typically one bound to a
        transaction). Events are not published from the bound copy; the
        caller publishes once the transaction commits.
        """
        return ReservationManager(
            repository,
            reservation_ttl=self.reservation_ttl,
            max_attempts=self.max_attempts,
            clock=self.clock,
            event_bus=None,
        )

    # ====================
    # Acquire / reserve
    # ====================

    async def acquire(self, product_id: str) -> str:
        """Pick any available unit; the unit is NOT reserved by this call."""
        unit_id = await self.repository.find_available_unit_id(product_id)
        if unit_id is None:
            raise InventoryExhaustedError(product_id)
        return unit_id

    async def reserve(self, unit_id: str, session_id: str) -> InventoryUnit:
        """available -> reserved{session_id, now}"""
        unit = await self.repository.reserve_unit(unit_id, session_id, self.clock())
        if unit is not None:
            logger.info(f"Reserved unit {unit_id} for session {session_id}")
            await publish_unit_reserved(
                self.event_bus, unit.unit_id, unit.product_id, session_id, unit.reserved_at
            )
            return unit

        if await self.repository.get_unit(unit_id) is None:
            raise UnitNotFoundError(unit_id)
        raise ReservationConflictError(unit_id)

    async def acquire_reserved(self, product_id: str, session_id: str) -> InventoryUnit:
        """
        Claim and reserve one available unit in a single statement.

        A claim can come back empty while units remain when every candidate
        row was locked by a concurrent claimer; that case is retried up to
        max_attempts before giving up.
        """
        for attempt in range(1, self.max_attempts + 1):
            unit = await self.repository.claim_available_unit(
                product_id, session_id, self.clock()
            )
            if unit is not None:
                logger.info(
                    f"Reserved unit {unit.unit_id} of product {product_id} "
                    f"for session {session_id}"
                )
                await publish_unit_reserved(
                    self.event_bus, unit.unit_id, product_id, session_id, unit.reserved_at
                )
                return unit

            if await self.repository.count_available_units(product_id) == 0:
                break
            logger.warning(
                f"Claim for product {product_id} lost a race "
                f"(attempt {attempt}/{self.max_attempts})"
            )

        raise InventoryExhaustedError(product_id)

    async def reserve_with_retry(self, product_id: str, session_id: str) -> InventoryUnit:
        """Two-step acquire + reserve, retrying a different unit on conflict."""
        for attempt in range(1, self.max_attempts + 1):
            unit_id = await self.acquire(product_id)
            try:
                return await self.reserve(unit_id, session_id)
            except ReservationConflictError:
                logger.warning(
                    f"Unit {unit_id} taken before reserve "
                    f"(attempt {attempt}/{self.max_attempts})"
                )

        raise InventoryExhaustedError(product_id)

    async def rebind(
        self, unit_id: str, from_session_id: str, to_session_id: str
    ) -> InventoryUnit:
        """
        Move a reservation from one holder id to another.

        reserved_at is reset so the TTL counts from the moment the payment
        session exists, keeping the reservation alive past the session expiry.
        """
        unit = await self.repository.rebind_reservation(
            unit_id, from_session_id, to_session_id, self.clock()
        )
        if unit is None:
            raise ReservationConflictError(
                unit_id, f"Unit {unit_id} is no longer held by {from_session_id}"
            )
        logger.debug(f"Rebound unit {unit_id}: {from_session_id} -> {to_session_id}")
        return unit

    # ====================
    # Release
    # ====================

    async def release(self, unit_id: str, reason: str = "released") -> bool:
        """reserved -> available. Returns False (no-op) for available or used units."""
        unit = await self.repository.release_unit(unit_id)
        if unit is None:
            logger.debug(f"Release of unit {unit_id} was a no-op")
            return False

        logger.info(f"Released unit {unit_id} ({reason})")
        await publish_unit_released(self.event_bus, unit.unit_id, unit.product_id, reason)
        return True

    async def release_session(
        self, session_id: str, reason: str = "session_expired"
    ) -> Optional[InventoryUnit]:
        """Release the unit still reserved by the session, if any."""
        unit = await self.repository.release_session(session_id)
        if unit is None:
            logger.debug(f"No reserved unit held by session {session_id}")
            return None

        logger.info(f"Released unit {unit.unit_id} held by session {session_id} ({reason})")
        await publish_unit_released(
            self.event_bus, unit.unit_id, unit.product_id, reason, session_id=session_id
        )
        return unit

    # ====================
    # Consume
    # ====================

    async def consume(
        self, unit_id: str, order_id: str, session_id: Optional[str] = None
    ) -> InventoryUnit:
        """
        available|reserved -> used{order_id}

        Idempotent for the same order. When session_id is given, a unit
        reserved by a different session is not taken.

        Raises:
            UnitNotFoundError: unit does not exist
            UnitConsistencyError: unit already used by another order
            ReservationConflictError: unit reserved by another session
        """
        for _ in range(self.max_attempts):
            unit = await self.repository.consume_unit(unit_id, order_id, session_id)
            if unit is not None:
                logger.info(f"Consumed unit {unit_id} for order {order_id}")
                return unit

            current = await self.repository.get_unit(unit_id)
            if current is None:
                raise UnitNotFoundError(unit_id)

            if current.state == UnitState.USED:
                if current.used_by_order_id == order_id:
                    return current
                logger.error(
                    f"Unit {unit_id} requested by order {order_id} already used by "
                    f"order {current.used_by_order_id}"
                )
                raise UnitConsistencyError(unit_id, order_id, current.used_by_order_id)

            if current.state == UnitState.RESERVED and session_id is not None \
                    and current.reserved_session_id != session_id:
                raise ReservationConflictError(
                    unit_id, f"Unit {unit_id} is reserved by another session"
                )
            # State moved between the write and the read; try the write again

        raise ReservationConflictError(unit_id)

    # ====================
    # Expiry
    # ====================

    async def sweep_expired(self, product_id: str, ttl: Optional[timedelta] = None) -> int:
        """
        Return reservations of one product older than ttl to available.

        Manual-payment holds are left alone. Used units are never touched.
        """
        ttl = self.reservation_ttl if ttl is None else ttl
        cutoff = self.clock() - ttl
        count = await self.repository.release_expired(
            product_id, cutoff, exclude_prefix=MANUAL_HOLD_PREFIX
        )
        if count:
            logger.info(f"Swept {count} expired reservation(s) for product {product_id}")
            await publish_reservations_swept(self.event_bus, product_id, count, cutoff)
        return count

    # ====================
    # Lookups
    # ====================

    async def find_by_session(self, session_id: str) -> Optional[InventoryUnit]:
        return await self.repository.get_unit_by_session(session_id)

    async def get_unit(self, unit_id: str) -> Optional[InventoryUnit]:
        return await self.repository.get_unit(unit_id)
