"""
Pytest configuration and fixtures.

Provides shared fixtures for testing including:
- In-memory database sessions
- Mock OCR engine
- Temporary photo storage
- Test client
"""

import os

# Settings are read on first import of the application modules
os.environ.setdefault("API_KEY", "test-api-key-123")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("OCR_ENGINE", "mock")
os.environ.setdefault("LOG_FORMAT", "text")

from datetime import datetime  # noqa: E402
from typing import AsyncIterator  # noqa: E402

import cv2  # noqa: E402
import numpy as np  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from yardgate.application.gate_intake import GateReconciler, GateSessionRegistry  # noqa: E402
from yardgate.application.idempotency import IdempotencyService, SubmissionGuard  # noqa: E402
from yardgate.core import security  # noqa: E402
from yardgate.domain.models import CapturedImage, GateAction, GateEvent  # noqa: E402
from yardgate.infrastructure.db.models import Base  # noqa: E402
from yardgate.infrastructure.db.repository import ContainerRepository  # noqa: E402
from yardgate.infrastructure.db.session import create_engine_for_url  # noqa: E402
from yardgate.infrastructure.ml.ocr import MockOCREngine  # noqa: E402
from yardgate.infrastructure.storage.storage import ImageStorage  # noqa: E402

TEST_API_KEY = os.environ["API_KEY"]
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def db_session() -> AsyncIterator[AsyncSession]:
    """Create a test database session on a fresh in-memory database."""
    engine = create_engine_for_url(TEST_DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def repository(db_session: AsyncSession) -> ContainerRepository:
    """Container repository bound to the test session."""
    return ContainerRepository(db_session)


@pytest.fixture
def storage(tmp_path) -> ImageStorage:
    """Photo storage in a temporary directory."""
    return ImageStorage(tmp_path / "photos")


@pytest.fixture
def guard() -> SubmissionGuard:
    """Fresh submission guard so tests do not share idempotency state."""
    return SubmissionGuard(idempotency=IdempotencyService(window_seconds=5))


@pytest.fixture
def reconciler(
    repository: ContainerRepository,
    storage: ImageStorage,
    guard: SubmissionGuard,
) -> GateReconciler:
    """Gate reconciler over the test database and storage."""
    return GateReconciler(
        repository,
        storage=storage,
        guard=guard,
        placeholder_armador="N/A",
    )


@pytest.fixture
def mock_ocr_engine() -> MockOCREngine:
    """OCR engine that always reads a valid container number."""
    return MockOCREngine(mock_text="CSQU 305438 3", mock_confidence=0.9)


@pytest.fixture
def sample_image_bytes() -> bytes:
    """Create sample JPEG bytes for testing."""
    img = np.zeros((480, 640, 3), dtype=np.uint8)
    # White block where the container code would be painted
    cv2.rectangle(img, (400, 20), (620, 80), (255, 255, 255), -1)
    _, buffer = cv2.imencode(".jpg", img)
    return buffer.tobytes()


@pytest.fixture
def photo(sample_image_bytes: bytes) -> CapturedImage:
    """Captured gate photo."""
    return CapturedImage(data=sample_image_bytes, content_type="image/jpeg")


@pytest.fixture
def make_event(photo: CapturedImage):
    """Factory for gate events with sensible defaults."""

    def _make(
        identifier: str = "CSQU3054383",
        action: GateAction = GateAction.ENTRADA,
        plate: str = "ABC1D23",
        driver: str = "João Silva",
        photo: CapturedImage | None = photo,
        timestamp: datetime | None = None,
    ) -> GateEvent:
        return GateEvent(
            identifier=identifier,
            action=action,
            photo=photo,
            plate=plate,
            driver=driver,
            timestamp=timestamp or datetime(2024, 3, 15, 10, 30),
        )

    return _make


@pytest.fixture
def test_client(tmp_path, mock_ocr_engine, monkeypatch) -> TestClient:
    """Create test client with mocked dependencies."""
    from yardgate.api import deps
    from yardgate.main import app

    # Fresh rate limiter per test
    monkeypatch.setattr(security, "_rate_limiter", None)

    test_storage = ImageStorage(tmp_path / "api_photos")
    test_guard = SubmissionGuard(idempotency=IdempotencyService(window_seconds=5))
    test_registry = GateSessionRegistry()

    app.dependency_overrides[deps.get_shared_ocr_engine] = lambda: mock_ocr_engine
    app.dependency_overrides[deps.get_image_storage] = lambda: test_storage
    app.dependency_overrides[deps.get_guard] = lambda: test_guard
    app.dependency_overrides[deps.get_registry] = lambda: test_registry

    with TestClient(app, headers={"X-API-Key": TEST_API_KEY}) as client:
        yield client

    app.dependency_overrides.clear()
