"""
Unit tests for submission deduplication and serialization.

Tests IdempotencyService and SubmissionGuard.
"""

import asyncio

import pytest

from yardgate.application.idempotency import IdempotencyService, SubmissionGuard
from yardgate.domain.models import GateAction

PHOTO = b"\xff\xd8gate-photo"


class TestIdempotencyService:
    """Tests for IdempotencyService."""

    def test_same_event_same_key(self):
        """Container, action and photo make up the key."""
        service = IdempotencyService(window_seconds=5)

        first = service.compute_key("CSQU3054383", GateAction.ENTRADA, PHOTO)
        second = service.compute_key("CSQU3054383", GateAction.ENTRADA, PHOTO)
        other = service.compute_key("CSQU3054383", GateAction.BAIXA, PHOTO)

        assert first == second
        assert first != other

    def test_seen_key_is_duplicate(self):
        """A remembered submission is replayed with its result."""
        service = IdempotencyService(window_seconds=5)
        key = service.compute_key("CSQU3054383", GateAction.ENTRADA, PHOTO)

        assert service.is_duplicate(key) is False
        service.mark_seen(key, "result")

        assert service.is_duplicate(key) is True
        assert service.get_cached_response(key) == "result"

    def test_zero_window_never_duplicate(self):
        """With no window every submission is written."""
        service = IdempotencyService(window_seconds=0)
        key = service.compute_key("CSQU3054383", GateAction.ENTRADA, PHOTO)
        service.mark_seen(key, "result")

        assert service.is_duplicate(key) is False


class TestSubmissionGuard:
    """Tests for SubmissionGuard."""

    @pytest.mark.asyncio
    async def test_second_holder_waits(self):
        """Holders of the same container number run one at a time."""
        guard = SubmissionGuard()
        order: list[str] = []
        released = asyncio.Event()

        async def first():
            async with guard.hold("CSQU3054383"):
                order.append("first-in")
                await released.wait()
                order.append("first-out")

        async def second():
            async with guard.hold("CSQU3054383"):
                order.append("second-in")

        first_task = asyncio.create_task(first())
        await asyncio.sleep(0)
        second_task = asyncio.create_task(second())
        await asyncio.sleep(0)

        assert order == ["first-in"]

        released.set()
        await asyncio.gather(first_task, second_task)

        assert order == ["first-in", "first-out", "second-in"]

    @pytest.mark.asyncio
    async def test_different_containers_do_not_block(self):
        """Each container number has its own lock."""
        guard = SubmissionGuard()

        async with guard.hold("CSQU3054383"):
            async with guard.hold("MSCU1234566"):
                assert set(guard._locks) == {"CSQU3054383", "MSCU1234566"}

    @pytest.mark.asyncio
    async def test_lock_dropped_after_release(self):
        """No lock is kept for containers without a submission in flight."""
        guard = SubmissionGuard()

        for number in ("CSQU3054383", "MSCU1234566", "TGHU9876543"):
            async with guard.hold(number):
                assert number in guard._locks

        assert guard._locks == {}
        assert guard._holders == {}

    @pytest.mark.asyncio
    async def test_lock_dropped_after_error(self):
        """A failing holder still releases and drops its lock."""
        guard = SubmissionGuard()

        with pytest.raises(RuntimeError):
            async with guard.hold("CSQU3054383"):
                raise RuntimeError("store unavailable")

        assert guard._locks == {}
