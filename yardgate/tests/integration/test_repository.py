"""
Integration tests for the container repository.

Runs against an in-memory SQLite database.
"""

from datetime import datetime

import pytest

from yardgate.domain.models import ContainerFile, ContainerRecord
from yardgate.infrastructure.db.models import ContainerDB
from yardgate.infrastructure.db.repository import ContainerRepository, RecordNotFoundError


def attachment(name: str = "entrada_CSQU3054383_15-03-2024.jpg") -> ContainerFile:
    return ContainerFile(
        name=name,
        content_type="image/jpeg",
        size=1024,
        path=f"2024-03-15/{name}",
        uploaded_at=datetime(2024, 3, 15, 10, 30),
    )


class TestContainerRepository:
    """Tests for ContainerRepository."""

    @pytest.mark.asyncio
    async def test_create_with_attachment(self, repository: ContainerRepository):
        """Created records get ids for themselves and their files."""
        record = await repository.create(ContainerRecord(
            container_number="csqu3054383",
            armador="N/A",
            entry_date="15/03/2024",
            files=[attachment()],
        ))

        assert record.id is not None
        assert record.container_number == "CSQU3054383"
        assert record.tare_kg == 0.0
        assert record.free_time_days == 0
        assert len(record.files) == 1
        assert record.files[0].id is not None

    @pytest.mark.asyncio
    async def test_find_is_case_insensitive(self, db_session, repository: ContainerRepository):
        """Lookup ignores case and surrounding spaces."""
        # Imported rows may not be uppercase
        db_session.add(ContainerDB(container_number="Mscu1234566", armador="MSC", files=[]))
        await db_session.flush()

        found = await repository.find_by_identifier("  mscu1234566 ")

        assert found is not None
        assert found.armador == "MSC"

    @pytest.mark.asyncio
    async def test_find_missing(self, repository: ContainerRepository):
        """Unknown numbers return None."""
        assert await repository.find_by_identifier("TGHU0000014") is None

    @pytest.mark.asyncio
    async def test_update_appends_attachment(self, repository: ContainerRepository):
        """Updates change fields and keep earlier files."""
        created = await repository.create(ContainerRecord(
            container_number="CSQU3054383",
            files=[attachment()],
        ))

        updated = await repository.update(
            created.id,
            {"exit_date": "20/03/2024", "status": "Baixa Pátio SJP"},
            attach=attachment("baixa_CSQU3054383_20-03-2024.jpg"),
        )

        assert updated.id == created.id
        assert updated.exit_date == "20/03/2024"
        assert updated.status == "Baixa Pátio SJP"
        assert [f.name for f in updated.files] == [
            "entrada_CSQU3054383_15-03-2024.jpg",
            "baixa_CSQU3054383_20-03-2024.jpg",
        ]

    @pytest.mark.asyncio
    async def test_update_unknown_field(self, repository: ContainerRepository):
        """Only known columns can be updated."""
        created = await repository.create(ContainerRecord(container_number="CSQU3054383"))

        with pytest.raises(ValueError):
            await repository.update(created.id, {"container_number": "MSCU1234566"})

    @pytest.mark.asyncio
    async def test_update_missing_row(self, repository: ContainerRepository):
        """Updating a row that does not exist fails loudly."""
        with pytest.raises(RecordNotFoundError):
            await repository.update(999, {"status": "x"})

    @pytest.mark.asyncio
    async def test_list_and_count(self, repository: ContainerRepository):
        """Listing is ordered by number and filterable by armador."""
        await repository.create(ContainerRecord(container_number="TGHU0000014", armador="Textainer"))
        await repository.create(ContainerRecord(container_number="CSQU3054383", armador="COSCO"))
        await repository.create(ContainerRecord(container_number="MSCU1234566", armador="MSC"))

        all_records = await repository.list_all()
        msc_only = await repository.list_all(armador="MSC")
        page = await repository.list_all(limit=1, offset=1)

        assert [r.container_number for r in all_records] == [
            "CSQU3054383",
            "MSCU1234566",
            "TGHU0000014",
        ]
        assert [r.container_number for r in msc_only] == ["MSCU1234566"]
        assert [r.container_number for r in page] == ["MSCU1234566"]
        assert await repository.count() == 3
