"""
Integration tests for gate event reconciliation.

Tests GateReconciler against the real repository, an in-memory
database and photo storage in a temporary directory.
"""

import asyncio
from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from yardgate.application.gate_intake import GateReconciler
from yardgate.domain.models import (
    CapturedImage,
    ContainerRecord,
    GateAction,
    GateRejection,
    GateSubmissionResult,
    RejectionReason,
    SubmissionOutcome,
)
from yardgate.infrastructure.db.repository import ContainerRepository


class FailingRepository(ContainerRepository):
    """Repository whose writes fail like a lost database connection."""

    async def create(self, record):
        raise OperationalError("INSERT INTO containers", {}, Exception("database is locked"))

    async def update(self, record_id, changes, attach=None):
        raise OperationalError("UPDATE containers", {}, Exception("database is locked"))


class LookupFailingRepository(ContainerRepository):
    """Repository whose reads fail like a lost database connection."""

    async def find_by_identifier(self, identifier):
        raise OperationalError("SELECT containers", {}, Exception("database is locked"))


class TestEntry:
    """Entrada reconciliation."""

    @pytest.mark.asyncio
    async def test_creates_unknown_container(self, reconciler, repository, storage, make_event):
        """First sight of a container creates it with placeholder values."""
        result = await reconciler.submit(make_event(identifier=" csqu3054383 "))

        assert isinstance(result, GateSubmissionResult)
        assert result.outcome == SubmissionOutcome.CREATED

        record = result.record
        assert record.container_number == "CSQU3054383"
        assert record.entry_date == "15/03/2024"
        assert record.entry_plate == "ABC1D23"
        assert record.entry_driver == "João Silva"
        assert record.status == "Em Operação (Entrada)"
        assert record.armador == "N/A"
        assert record.free_time_days == 0
        assert record.remaining_days == 0
        assert record.tare_kg == 0.0

        assert len(record.files) == 1
        photo = record.files[0]
        assert photo.name == "entrada_CSQU3054383_15-03-2024.jpg"
        assert photo.content_type == "image/jpeg"
        assert storage.load(photo.path) == make_event().photo.data

        assert await repository.count() == 1

    @pytest.mark.asyncio
    async def test_updates_existing_container(self, reconciler, repository, make_event):
        """Known containers get new entry fields and one more photo."""
        existing = await repository.create(ContainerRecord(
            container_number="CSQU3054383",
            armador="COSCO",
            free_time_days=14,
            remaining_days=9,
        ))

        result = await reconciler.submit(make_event(plate="XYZ9A87", driver="Maria"))

        assert result.outcome == SubmissionOutcome.UPDATED
        assert result.record.id == existing.id
        assert result.record.armador == "COSCO"
        assert result.record.remaining_days == 9
        assert result.record.entry_plate == "XYZ9A87"
        assert result.record.entry_driver == "Maria"
        assert result.record.status == "Em Operação (Entrada)"
        assert len(result.record.files) == 1
        assert await repository.count() == 1

    @pytest.mark.asyncio
    async def test_requires_plate_and_driver(self, reconciler, repository, make_event):
        """Nothing is written without the truck details."""
        result = await reconciler.submit(make_event(driver=""))

        assert isinstance(result, GateRejection)
        assert result.reason == RejectionReason.MISSING_PLATE_AND_DRIVER
        assert await repository.count() == 0


class TestExit:
    """Baixa reconciliation."""

    @pytest.mark.asyncio
    async def test_unknown_container_rejected(self, reconciler, repository, storage, make_event):
        """An exit cannot be registered for a container not on file."""
        result = await reconciler.submit(make_event(action=GateAction.BAIXA))

        assert isinstance(result, GateRejection)
        assert result.reason == RejectionReason.CONTAINER_NOT_FOUND
        assert "CSQU3054383" in result.message
        assert await repository.count() == 0
        assert not storage.root.exists() or not any(storage.root.rglob("*.jpg"))

    @pytest.mark.asyncio
    async def test_updates_exit_fields(self, reconciler, repository, make_event):
        """Exit fields and status are written, entry fields kept."""
        await reconciler.submit(make_event())

        result = await reconciler.submit(make_event(
            action=GateAction.BAIXA,
            plate="XYZ9A87",
            driver="Maria",
            photo=CapturedImage(data=b"\xff\xd8exit-photo", content_type="image/jpeg"),
            timestamp=datetime(2024, 3, 20, 16, 0),
        ))

        assert result.outcome == SubmissionOutcome.UPDATED
        record = result.record
        assert record.exit_date == "20/03/2024"
        assert record.exit_plate == "XYZ9A87"
        assert record.exit_driver == "Maria"
        assert record.status == "Baixa Pátio SJP"
        assert record.entry_plate == "ABC1D23"
        assert [f.name for f in record.files] == [
            "entrada_CSQU3054383_15-03-2024.jpg",
            "baixa_CSQU3054383_20-03-2024.jpg",
        ]
        assert await repository.count() == 1

    @pytest.mark.asyncio
    async def test_exit_without_truck_details(self, reconciler, repository, make_event):
        """Plate and driver are optional on exit."""
        await repository.create(ContainerRecord(container_number="CSQU3054383"))

        result = await reconciler.submit(make_event(action=GateAction.BAIXA, plate="", driver=""))

        assert result.outcome == SubmissionOutcome.UPDATED
        assert result.record.exit_date == "15/03/2024"


class TestPreconditions:
    """Checks made before anything is looked up."""

    @pytest.mark.asyncio
    async def test_missing_identifier(self, reconciler, make_event):
        """Blank container numbers are rejected."""
        result = await reconciler.submit(make_event(identifier="   "))

        assert result.reason == RejectionReason.MISSING_IDENTIFIER

    @pytest.mark.asyncio
    async def test_missing_photo(self, reconciler, make_event):
        """Every gate event needs its photo."""
        result = await reconciler.submit(make_event(photo=None))

        assert result.reason == RejectionReason.MISSING_PHOTO

    @pytest.mark.asyncio
    async def test_identifier_checked_before_photo(self, reconciler, make_event):
        """The first missing item is reported."""
        result = await reconciler.submit(make_event(identifier="", photo=None, driver=""))

        assert result.reason == RejectionReason.MISSING_IDENTIFIER


class TestSerialization:
    """Duplicate and concurrent submissions."""

    @pytest.mark.asyncio
    async def test_duplicate_submission_not_written_twice(self, reconciler, repository, make_event):
        """The same photo for the same action within the window is replayed."""
        first = await reconciler.submit(make_event())
        second = await reconciler.submit(make_event())

        assert first.duplicate is False
        assert second.duplicate is True
        assert second.outcome == SubmissionOutcome.CREATED
        assert second.record.id == first.record.id

        record = await repository.find_by_identifier("CSQU3054383")
        assert len(record.files) == 1

    @pytest.mark.asyncio
    async def test_concurrent_entries_create_once(self, reconciler, repository, make_event):
        """Two terminals submitting the same new container produce one record."""
        first_photo = CapturedImage(data=b"\xff\xd8terminal-1", content_type="image/jpeg")
        second_photo = CapturedImage(data=b"\xff\xd8terminal-2", content_type="image/jpeg")

        results = await asyncio.gather(
            reconciler.submit(make_event(photo=first_photo)),
            reconciler.submit(make_event(photo=second_photo)),
        )

        assert sorted(r.outcome.value for r in results) == ["created", "updated"]
        assert await repository.count() == 1

        record = await repository.find_by_identifier("CSQU3054383")
        assert len(record.files) == 2
        assert reconciler._guard._locks == {}


class TestStoreFailure:
    """Failures of the record store."""

    @pytest.mark.asyncio
    async def test_failure_reported_and_photo_removed(self, db_session, storage, guard, make_event):
        """A failed write is an external failure and leaves no orphan photo."""
        reconciler = GateReconciler(
            FailingRepository(db_session),
            storage=storage,
            guard=guard,
            placeholder_armador="N/A",
        )

        result = await reconciler.submit(make_event())

        assert isinstance(result, GateRejection)
        assert result.reason == RejectionReason.EXTERNAL_FAILURE
        assert "database is locked" in result.message
        assert list(storage.root.rglob("*.jpg")) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", [GateAction.ENTRADA, GateAction.BAIXA])
    async def test_lookup_failure_reported(self, db_session, storage, guard, make_event, action):
        """A failed existence check is an external failure, not an exception."""
        reconciler = GateReconciler(
            LookupFailingRepository(db_session),
            storage=storage,
            guard=guard,
        )

        result = await reconciler.submit(make_event(action=action))

        assert isinstance(result, GateRejection)
        assert result.reason == RejectionReason.EXTERNAL_FAILURE
        assert "database is locked" in result.message
        assert not storage.root.exists() or not any(storage.root.rglob("*.jpg"))

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self, db_session, storage, guard, make_event):
        """A retry after a failure is attempted again, not replayed."""
        failing = GateReconciler(FailingRepository(db_session), storage=storage, guard=guard)
        working = GateReconciler(ContainerRepository(db_session), storage=storage, guard=guard)

        await failing.submit(make_event())
        result = await working.submit(make_event())

        assert result.outcome == SubmissionOutcome.CREATED
        assert result.duplicate is False
