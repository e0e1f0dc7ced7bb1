"""
Batch writer - groups write operations into size-bounded transactional units.

Units are committed concurrently; a failing unit is reported and does not
stop the others.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from ..config.settings import settings

logger = logging.getLogger(__name__)

CANDIDATES = "candidates"
GRADES = "grades"
QUESTIONS = "questions"
EXAMS = "exams"


@dataclass(frozen=True)
class WriteOperation:
    """
    One proposed write.

    ``defaults`` are fields applied only if the document does not exist yet
    (used for updates of candidates created earlier in the same run).
    """
    kind: str  # create, update
    collection: str
    document_id: str
    fields: Dict[str, Any]
    defaults: Optional[Dict[str, Any]] = None


@dataclass
class WriteUnit:
    ordinal: int  # 1-based
    operations: List[WriteOperation] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.operations)

    def count(self, kind: str, collection: str) -> int:
        return sum(1 for op in self.operations if op.kind == kind and op.collection == collection)


@dataclass
class UnitOutcome:
    unit: WriteUnit
    committed: bool
    error: Optional[str] = None


class BatchWriter:
    """
    Accumulates operations into units of at most ``max_operations``.

    Operations added together with ``add_group`` always land in the same
    unit, so a grade is never committed apart from its candidate write.
    """

    def __init__(
        self,
        max_operations: int = settings.WRITE_BATCH_SIZE,
        store_limit: int = settings.STORE_BATCH_LIMIT,
    ):
        if max_operations <= 0:
            raise ValueError("max_operations must be positive")
        if max_operations >= store_limit:
            raise ValueError(
                f"max_operations ({max_operations}) must stay below the store limit ({store_limit})"
            )
        self.max_operations = max_operations
        self._sealed: List[WriteUnit] = []
        self._current = WriteUnit(ordinal=1)

    def add(self, operation: WriteOperation) -> None:
        self.add_group([operation])

    def add_group(self, operations: Sequence[WriteOperation]) -> None:
        if len(operations) > self.max_operations:
            raise ValueError(
                f"A group of {len(operations)} operations exceeds the unit ceiling of {self.max_operations}"
            )
        if len(self._current) + len(operations) > self.max_operations:
            self._seal()
        self._current.operations.extend(operations)
        if len(self._current) == self.max_operations:
            self._seal()

    def _seal(self) -> None:
        self._sealed.append(self._current)
        self._current = WriteUnit(ordinal=self._current.ordinal + 1)

    @property
    def units(self) -> List[WriteUnit]:
        """Sealed units plus the final partial unit, in order."""
        if len(self._current):
            return self._sealed + [self._current]
        return list(self._sealed)

    @property
    def operation_count(self) -> int:
        return sum(len(unit) for unit in self.units)

    async def commit_all(
        self,
        commit: Callable[[WriteUnit], Awaitable[Any]],
        on_committed: Optional[Callable[[WriteUnit, int], Awaitable[None]]] = None,
    ) -> List[UnitOutcome]:
        """
        Commit every unit.

        Args:
            commit: Coroutine function writing one unit (the transactional writer)
            on_committed: Awaited after each successful commit with the unit and
                the total number of units

        Returns:
            One outcome per unit, in unit order
        """
        units = self.units
        total = len(units)

        async def _commit_one(unit: WriteUnit) -> UnitOutcome:
            try:
                await commit(unit)
            except Exception as e:
                logger.error(f"❌ Batch {unit.ordinal}/{total} failed ({len(unit)} operations): {e}")
                return UnitOutcome(unit=unit, committed=False, error=str(e) or type(e).__name__)
            logger.info(f"✅ Batch {unit.ordinal}/{total} committed ({len(unit)} operations)")
            if on_committed:
                await on_committed(unit, total)
            return UnitOutcome(unit=unit, committed=True)

        return list(await asyncio.gather(*(_commit_one(unit) for unit in units)))
