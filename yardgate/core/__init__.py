"""Core configuration and utilities package."""

from yardgate.core.config import Settings, get_settings
from yardgate.core.logging import get_logger, set_correlation_id, setup_logging
from yardgate.core.security import (
    RateLimiter,
    check_rate_limit,
    compute_image_hash,
    verify_api_key,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Logging
    "get_logger",
    "set_correlation_id",
    "setup_logging",
    # Security
    "RateLimiter",
    "check_rate_limit",
    "compute_image_hash",
    "verify_api_key",
]
