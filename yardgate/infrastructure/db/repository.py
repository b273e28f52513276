"""
Repository pattern implementations for data access.

Repositories abstract database operations and provide
a clean interface for the application layer.
"""

from collections.abc import Mapping
from typing import Any, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from yardgate.domain.models import ContainerFile, ContainerRecord
from yardgate.infrastructure.db.models import ContainerDB, ContainerFileDB

# Columns the application may change through update()
UPDATABLE_FIELDS = frozenset({
    "armador",
    "status",
    "container_type",
    "operator",
    "entry_date",
    "entry_plate",
    "entry_driver",
    "exit_date",
    "exit_plate",
    "exit_driver",
    "return_depot",
    "origin",
    "demurrage",
    "tare_kg",
    "max_gross_kg",
    "free_time_days",
    "remaining_days",
})


class RecordNotFoundError(Exception):
    """Raised when updating a container row that does not exist."""

    pass


class ContainerRepository:
    """
    Repository for container records and their attachments.

    Implements the record store used by gate intake: lookup by
    container number, create, and update with an optional new file.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self._session = session

    async def find_by_identifier(self, identifier: str) -> ContainerRecord | None:
        """
        Find a container by number, ignoring case and surrounding spaces.

        Args:
            identifier: Container number as typed or recognized.

        Returns:
            ContainerRecord: Domain model if found, None otherwise.
        """
        db_container = await self._get_db_by_identifier(identifier)
        if db_container is None:
            return None
        return self._to_domain(db_container)

    async def get_by_id(self, record_id: int) -> ContainerRecord | None:
        """Get a container by row id."""
        db_container = await self._session.get(ContainerDB, record_id)
        if db_container is None:
            return None
        return self._to_domain(db_container)

    async def create(self, record: ContainerRecord) -> ContainerRecord:
        """
        Create a new container with its initial attachments.

        Args:
            record: Domain model to persist.

        Returns:
            ContainerRecord: Created record with IDs populated.
        """
        db_container = ContainerDB(
            container_number=record.container_number.strip().upper(),
            **{name: getattr(record, name) for name in UPDATABLE_FIELDS},
        )
        db_container.files = [self._file_to_db(f) for f in record.files]

        self._session.add(db_container)
        await self._session.flush()

        return self._to_domain(db_container)

    async def update(
        self,
        record_id: int,
        changes: Mapping[str, Any],
        attach: ContainerFile | None = None,
    ) -> ContainerRecord:
        """
        Update container fields and optionally append an attachment.

        Args:
            record_id: Row id of the container.
            changes: Field name to new value.
            attach: File to append to the attachment list.

        Returns:
            ContainerRecord: Updated record.

        Raises:
            RecordNotFoundError: If the row does not exist.
            ValueError: If a change names an unknown field.
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown container fields: {sorted(unknown)}")

        db_container = await self._session.get(ContainerDB, record_id)
        if db_container is None:
            raise RecordNotFoundError(f"Container row {record_id} not found")

        for name, value in changes.items():
            setattr(db_container, name, value)

        if attach is not None:
            db_container.files.append(self._file_to_db(attach))

        await self._session.flush()

        return self._to_domain(db_container)

    async def list_all(
        self,
        armador: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> Sequence[ContainerRecord]:
        """
        List containers ordered by container number.

        Args:
            armador: Optional exact armador filter.
            limit: Maximum records to return.
            offset: Pagination offset.

        Returns:
            list: Container records.
        """
        stmt = select(ContainerDB).order_by(ContainerDB.container_number)

        if armador:
            stmt = stmt.where(ContainerDB.armador == armador)
        if limit is not None:
            stmt = stmt.limit(limit).offset(offset)

        result = await self._session.execute(stmt)
        return [self._to_domain(c) for c in result.scalars().all()]

    async def count(self) -> int:
        """Number of containers in the store."""
        result = await self._session.execute(select(func.count(ContainerDB.id)))
        return result.scalar() or 0

    async def commit(self) -> None:
        """Commit pending changes so other sessions can see them."""
        await self._session.commit()

    async def rollback(self) -> None:
        """Discard pending changes after a failed write."""
        await self._session.rollback()

    async def _get_db_by_identifier(self, identifier: str) -> ContainerDB | None:
        stmt = select(ContainerDB).where(
            func.upper(ContainerDB.container_number) == identifier.strip().upper(),
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    def _file_to_db(self, file: ContainerFile) -> ContainerFileDB:
        return ContainerFileDB(
            name=file.name,
            content_type=file.content_type,
            size=file.size,
            path=file.path,
            uploaded_at=file.uploaded_at,
        )

    def _to_domain(self, db_container: ContainerDB) -> ContainerRecord:
        """Convert database model to domain model."""
        return ContainerRecord(
            id=db_container.id,
            container_number=db_container.container_number,
            files=[
                ContainerFile(
                    id=f.id,
                    name=f.name,
                    content_type=f.content_type,
                    size=f.size,
                    path=f.path,
                    uploaded_at=f.uploaded_at,
                )
                for f in db_container.files
            ],
            **{name: getattr(db_container, name) for name in UPDATABLE_FIELDS},
        )
