"""Photo storage infrastructure package."""

from yardgate.infrastructure.storage.storage import ImageStorage, StorageError

__all__ = ["ImageStorage", "StorageError"]
