"""
Container query service for the yard dashboard.

Read-side use cases over the container store: filtered listings,
free-time alerts, dashboard counters and inventory lines.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from yardgate.core.config import get_settings
from yardgate.core.logging import get_logger
from yardgate.domain.models import (
    ContainerRecord,
    ContainerStats,
    DeadlineStatus,
    DeadlineSummary,
    InventoryItem,
    ReturnStatus,
)
from yardgate.domain.services import (
    ContainerNumberValidator,
    ContainerStatsCalculator,
    ContainerStatusClassifier,
    FreeTimeEvaluator,
    InventoryGenerator,
)
from yardgate.infrastructure.db.repository import ContainerRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class DeadlineReport:
    """Containers needing attention, with their counts."""

    summary: DeadlineSummary
    expired: list[ContainerRecord]
    expiring: list[ContainerRecord]


class ContainerQueryService:
    """
    Service for reading container state.

    Example:
        service = ContainerQueryService(session)
        overdue = await service.list_containers(deadline=DeadlineStatus.EXPIRED)
    """

    def __init__(self, session: AsyncSession, warning_days: int | None = None):
        """
        Initialize query service.

        Args:
            session: Database session.
            warning_days: Optional override of the free-time warning threshold.
        """
        self._repo = ContainerRepository(session)

        if warning_days is None:
            warning_days = get_settings().free_time_warning_days

        self._classifier = ContainerStatusClassifier()
        self._evaluator = FreeTimeEvaluator(
            warning_days=warning_days,
            classifier=self._classifier,
        )
        self._validator = ContainerNumberValidator()

    async def list_containers(
        self,
        status: ReturnStatus | None = None,
        deadline: DeadlineStatus | None = None,
        armador: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ContainerRecord]:
        """
        List containers matching all given filters.

        Args:
            status: Only containers with this return classification.
            deadline: Only containers with this free-time classification.
            armador: Only containers of this armador.
            limit: Maximum records to return.
            offset: Pagination offset over the filtered list.

        Returns:
            list: Matching container records.
        """
        records = await self._repo.list_all(armador=armador)

        if status is not None:
            records = [r for r in records if self._classifier.classify_record(r) is status]
        if deadline is not None:
            records = [r for r in records if self._evaluator.classify_record(r) is deadline]

        return list(records[offset:offset + limit])

    async def get_container(self, number: str) -> ContainerRecord | None:
        """
        Get a container by number.

        Falls back to the check-digit-corrected number when the exact
        number is not on file.
        """
        record = await self._repo.find_by_identifier(number)
        if record is not None:
            return record

        corrected = self._validator.validate_and_correct(number)
        if corrected and corrected != number.strip().upper():
            logger.debug("container_lookup_corrected", raw=number, corrected=corrected)
            return await self._repo.find_by_identifier(corrected)

        return None

    async def stats(self) -> ContainerStats:
        """Dashboard counters over every container."""
        records = await self._repo.list_all()
        calculator = ContainerStatsCalculator(
            classifier=self._classifier,
            evaluator=self._evaluator,
        )
        return calculator.compute(records)

    async def deadlines(self) -> DeadlineReport:
        """Containers whose free time has run out or is about to."""
        records = await self._repo.list_all()

        expired: list[ContainerRecord] = []
        expiring: list[ContainerRecord] = []
        for record in records:
            deadline = self._evaluator.classify_record(record)
            if deadline is DeadlineStatus.EXPIRED:
                expired.append(record)
            elif deadline is DeadlineStatus.EXPIRING:
                expiring.append(record)

        summary = DeadlineSummary(expired=len(expired), expiring=len(expiring))
        if summary.is_critical:
            logger.info("free_time_expired", count=summary.expired)

        return DeadlineReport(summary=summary, expired=expired, expiring=expiring)

    async def inventory(self) -> list[InventoryItem]:
        """Inventory lines derived from every container."""
        records = await self._repo.list_all()
        return InventoryGenerator(classifier=self._classifier).generate(records)
