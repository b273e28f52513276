"""Infrastructure layer package."""

from yardgate.infrastructure.db import (
    ContainerRepository,
    RecordNotFoundError,
    close_db,
    get_session,
    init_db,
)
from yardgate.infrastructure.ml import (
    MockOCREngine,
    OCREngine,
    OCRError,
    get_ocr_engine,
)
from yardgate.infrastructure.storage import ImageStorage, StorageError

__all__ = [
    # Database
    "get_session",
    "init_db",
    "close_db",
    "ContainerRepository",
    "RecordNotFoundError",
    # ML
    "OCREngine",
    "MockOCREngine",
    "OCRError",
    "get_ocr_engine",
    # Storage
    "ImageStorage",
    "StorageError",
]
