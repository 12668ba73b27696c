"""
Saga helper

Runs steps in order and records a compensation for every step that
succeeded. If the block exits with an exception the recorded compensations
run in reverse order and the exception propagates. A failing compensation
is logged and does not stop the others.

Usage:
    async with Saga("checkout") as saga:
        unit = await saga.step("reserve", reserve(), compensate=release)
        session = await saga.step("create_session", create(unit), compensate=expire)
"""

import logging
from typing import Any, Awaitable, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

Compensation = Callable[[Any], Awaitable[Any]]


class Saga:
    """Sequence of steps with compensations, unwound on failure"""

    def __init__(self, name: str):
        self.name = name
        self._compensations: List[Tuple[str, Any, Compensation]] = []
        self.steps_executed = 0
        self.compensations_run = 0
        self.compensations_failed = 0

    async def step(
        self,
        name: str,
        action: Awaitable[Any],
        compensate: Optional[Compensation] = None,
    ) -> Any:
        """Await action; on success record compensate(result) for rollback"""
        result = await action
        self.steps_executed += 1
        if compensate is not None:
            self._compensations.append((name, result, compensate))
        return result

    async def compensate(self) -> None:
        """Run recorded compensations newest first; each runs at most once"""
        while self._compensations:
            name, value, comp = self._compensations.pop()
            try:
                await comp(value)
                self.compensations_run += 1
                logger.info(f"[{self.name}] compensated step '{name}'")
            except Exception as e:
                self.compensations_failed += 1
                logger.error(f"[{self.name}] compensation for step '{name}' failed: {e}")

    @property
    def rollback_complete(self) -> bool:
        return not self._compensations and self.compensations_failed == 0

    async def __aenter__(self) -> "Saga":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            logger.warning(f"[{self.name}] failed after {self.steps_executed} step(s): {exc_val!r}")
            await self.compensate()
        else:
            self._compensations.clear()
        return False
