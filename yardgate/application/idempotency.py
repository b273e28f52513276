"""
Submission deduplication and serialization.

Prevents the same gate event from being written twice when an
operator double-submits, and keeps two submissions for the same
container from interleaving their lookup and write.
"""

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from yardgate.core.config import get_settings
from yardgate.core.security import compute_image_hash
from yardgate.domain.models import GateAction


@dataclass
class IdempotencyService:
    """
    Service for deduplicating submissions within a time window.

    Uses container number + action + photo hash as composite key.

    Example:
        service = IdempotencyService(window_seconds=5)
        key = service.compute_key("CSQU3054383", GateAction.ENTRADA, photo)
        if service.is_duplicate(key):
            return service.get_cached_response(key)
        service.mark_seen(key, result)
    """

    window_seconds: int = 5
    _seen: dict[str, tuple[float, Any]] = field(default_factory=dict)

    def compute_key(self, identifier: str, action: GateAction, photo: bytes) -> str:
        """
        Compute idempotency key for a gate submission.

        Args:
            identifier: Normalized container number.
            action: Gate action.
            photo: Raw photo bytes.

        Returns:
            str: Idempotency key.
        """
        return f"{identifier}:{action.value}:{compute_image_hash(photo)[:16]}"

    def is_duplicate(self, key: str) -> bool:
        """True if the key was seen within the time window."""
        self._cleanup_expired()

        if key not in self._seen:
            return False

        seen_time, _ = self._seen[key]
        return (time.time() - seen_time) < self.window_seconds

    def get_cached_response(self, key: str) -> Any:
        """Cached result for a duplicate submission, or None."""
        if key in self._seen:
            _, response = self._seen[key]
            return response
        return None

    def mark_seen(self, key: str, response: Any = None) -> None:
        """Remember a submission together with its result."""
        self._seen[key] = (time.time(), response)

    def _cleanup_expired(self) -> None:
        cutoff = time.time() - self.window_seconds

        expired_keys = [
            key for key, (seen_time, _) in self._seen.items()
            if seen_time < cutoff
        ]

        for key in expired_keys:
            del self._seen[key]


@dataclass
class SubmissionGuard:
    """
    Serializes submissions per container number.

    The lookup-then-write of a gate submission runs under the lock
    for its container number, so two operators submitting the same
    container cannot both decide to create it. A lock is dropped once
    its last holder leaves, so only containers with a submission in
    flight keep one.

    Example:
        async with guard.hold("CSQU3054383"):
            ...
    """

    idempotency: IdempotencyService = field(default_factory=IdempotencyService)
    _locks: dict[str, asyncio.Lock] = field(default_factory=dict)
    _holders: dict[str, int] = field(default_factory=dict)

    @asynccontextmanager
    async def hold(self, identifier: str) -> AsyncIterator[None]:
        """Hold the lock for one container number."""
        lock = self._locks.get(identifier)
        if lock is None:
            lock = self._locks[identifier] = asyncio.Lock()
        self._holders[identifier] = self._holders.get(identifier, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[identifier] -= 1
            if not self._holders[identifier]:
                del self._holders[identifier]
                del self._locks[identifier]


# Global submission guard instance
_submission_guard: SubmissionGuard | None = None


def get_submission_guard() -> SubmissionGuard:
    """Get the global submission guard instance."""
    global _submission_guard
    if _submission_guard is None:
        _submission_guard = SubmissionGuard(
            idempotency=IdempotencyService(
                window_seconds=get_settings().idempotency_window_seconds,
            ),
        )
    return _submission_guard
