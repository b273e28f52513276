"""
FastAPI dependencies for dependency injection.

Provides database sessions, use case instances, and
authentication dependencies for route handlers.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from yardgate.application.container_service import ContainerQueryService
from yardgate.application.gate_intake import (
    ContainerTextRecognizer,
    GateReconciler,
    GateSessionRegistry,
    get_gate_session_registry,
)
from yardgate.application.idempotency import SubmissionGuard, get_submission_guard
from yardgate.core.security import check_rate_limit, verify_api_key
from yardgate.infrastructure.db.repository import ContainerRepository
from yardgate.infrastructure.db.session import get_session
from yardgate.infrastructure.ml.ocr import OCREngine, get_ocr_engine
from yardgate.infrastructure.storage.storage import ImageStorage


# Type aliases for cleaner route signatures
Session = Annotated[AsyncSession, Depends(get_session)]
ApiKeyAuth = Annotated[None, Depends(verify_api_key)]
RateLimited = Annotated[None, Depends(check_rate_limit)]

_ocr_engine: OCREngine | None = None


def get_shared_ocr_engine() -> OCREngine:
    """
    Dependency to get the configured OCR engine.

    Engines load their models lazily, so one instance is shared
    across requests.
    """
    global _ocr_engine
    if _ocr_engine is None:
        _ocr_engine = get_ocr_engine()
    return _ocr_engine


def get_image_storage() -> ImageStorage:
    """Dependency to get gate photo storage."""
    return ImageStorage()


def get_guard() -> SubmissionGuard:
    """Dependency to get the global submission guard."""
    return get_submission_guard()


def get_registry() -> GateSessionRegistry:
    """Dependency to get the gate session registry."""
    return get_gate_session_registry()


async def get_text_recognizer(
    engine: Annotated[OCREngine, Depends(get_shared_ocr_engine)],
) -> ContainerTextRecognizer:
    """
    Dependency to get the container text recognizer.

    Args:
        engine: OCR engine.

    Returns:
        ContainerTextRecognizer: Recognizer using the configured owner prefixes.
    """
    return ContainerTextRecognizer(ocr_engine=engine)


async def get_reconciler(
    session: Session,
    storage: Annotated[ImageStorage, Depends(get_image_storage)],
    guard: Annotated[SubmissionGuard, Depends(get_guard)],
) -> GateReconciler:
    """
    Dependency to get the gate reconciler.

    Args:
        session: Database session.
        storage: Photo storage.
        guard: Submission guard.

    Returns:
        GateReconciler: Reconciler bound to this request's session.
    """
    return GateReconciler(ContainerRepository(session), storage=storage, guard=guard)


async def get_query_service(session: Session) -> ContainerQueryService:
    """Dependency to get the container query service."""
    return ContainerQueryService(session)


# Type aliases for use case dependencies
Recognizer = Annotated[ContainerTextRecognizer, Depends(get_text_recognizer)]
Reconciler = Annotated[GateReconciler, Depends(get_reconciler)]
QueryService = Annotated[ContainerQueryService, Depends(get_query_service)]
Registry = Annotated[GateSessionRegistry, Depends(get_registry)]
Storage = Annotated[ImageStorage, Depends(get_image_storage)]
