"""
Access guard for the gate API.

Gate terminals and dashboards present a shared API key. Each terminal
(identified by its X-Terminal-ID header, or its address when it sends
none) is throttled by a sliding-window rate limiter.
"""

import hashlib
import secrets
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from yardgate.core.config import get_settings
from yardgate.core.logging import get_logger

logger = get_logger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

TERMINAL_HEADER = "X-Terminal-ID"


async def verify_api_key(
    api_key: Annotated[str | None, Depends(api_key_header)],
) -> None:
    """
    Verify the API key sent by a terminal or dashboard.

    Raises:
        HTTPException: 401 if the key is missing or wrong.
    """
    if api_key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required",
        )

    if not secrets.compare_digest(api_key, get_settings().api_key):
        logger.warning("api_key_invalid")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )


@dataclass
class RateLimiter:
    """
    In-memory sliding-window rate limiter.

    Attributes:
        requests_per_window: Requests allowed per client within the window.
        window_seconds: Length of the window in seconds.
    """

    requests_per_window: int
    window_seconds: int
    _requests: dict[str, deque[float]] = field(default_factory=lambda: defaultdict(deque))

    def is_allowed(self, key: str) -> bool:
        """Record a request for the client and say whether it fits in the window."""
        now = time.monotonic()
        history = self._expire(key, now)

        if len(history) < self.requests_per_window:
            history.append(now)
            return True
        return False

    def retry_after(self, key: str) -> int:
        """Seconds until the client's oldest request leaves the window."""
        now = time.monotonic()
        history = self._expire(key, now)
        if not history:
            return 0
        return max(1, int(history[0] + self.window_seconds - now) + 1)

    def _expire(self, key: str, now: float) -> deque[float]:
        history = self._requests[key]
        while history and history[0] <= now - self.window_seconds:
            history.popleft()
        return history


_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Get or create the global rate limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        settings = get_settings()
        _rate_limiter = RateLimiter(
            requests_per_window=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
    return _rate_limiter


def client_key(request: Request) -> str:
    """Rate-limit bucket for a request: the terminal ID, else the client address."""
    terminal = request.headers.get(TERMINAL_HEADER, "").strip()
    if terminal:
        return f"terminal:{terminal}"
    return request.client.host if request.client else "unknown"


async def check_rate_limit(request: Request) -> None:
    """
    Rate limiting dependency for API routes.

    Raises:
        HTTPException: 429 with Retry-After when the client is over its limit.
    """
    rate_limiter = get_rate_limiter()
    key = client_key(request)

    if not rate_limiter.is_allowed(key):
        retry_after = rate_limiter.retry_after(key)
        logger.warning("rate_limit_exceeded", client=key, retry_after=retry_after)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please try again later.",
            headers={
                "Retry-After": str(retry_after),
                "X-RateLimit-Remaining": "0",
            },
        )


def compute_image_hash(image_bytes: bytes) -> str:
    """SHA-256 hex digest of photo bytes."""
    return hashlib.sha256(image_bytes).hexdigest()
