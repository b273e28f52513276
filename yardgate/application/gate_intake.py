"""
Gate intake use case.

Orchestrates one physical gate interaction:
1. Photo capture (image types only)
2. Text recognition on the container-code region, then the full frame
3. Container number / plate extraction
4. Operator confirmation of the populated fields
5. Reconciliation against the container store (create or update)
6. Photo attachment and workflow reset
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum

import cv2
import numpy as np
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError

from yardgate.application.idempotency import SubmissionGuard, get_submission_guard
from yardgate.core.config import get_settings
from yardgate.core.logging import get_logger
from yardgate.domain.extraction import OcrTextExtractor
from yardgate.domain.models import (
    CapturedImage,
    ContainerFile,
    ContainerRecord,
    GateAction,
    GateEvent,
    GateRejection,
    GateSubmissionResult,
    OcrExtractionResult,
    RejectionReason,
    SubmissionOutcome,
)
from yardgate.domain.services import ContainerNumberValidator
from yardgate.infrastructure.db.repository import ContainerRepository
from yardgate.infrastructure.ml.ocr import OCREngine, get_ocr_engine
from yardgate.infrastructure.storage.storage import ImageStorage, StorageError

logger = get_logger(__name__)

ENTRY_STATUS = "Em Operação (Entrada)"
EXIT_STATUS = "Baixa Pátio SJP"
DATE_FORMAT = "%d/%m/%Y"


class IntakeState(str, Enum):
    """
    Steps of a gate interaction.

    IDLE -> CAPTURING -> RECOGNIZING -> FIELDS_POPULATED -> SUBMITTING -> IDLE
    """

    IDLE = "idle"
    CAPTURING = "capturing"
    RECOGNIZING = "recognizing"
    FIELDS_POPULATED = "fields_populated"
    SUBMITTING = "submitting"


class InvalidTransitionError(Exception):
    """Raised when a gate interaction step is requested out of order."""

    def __init__(self, action: str, state: IntakeState):
        self.action = action
        self.state = state
        super().__init__(f"Cannot {action} while {state.value}")


@dataclass(frozen=True)
class RecognitionOutcome:
    """
    What recognition found in a captured photo.

    Attributes:
        extraction: Container or plate candidate (both empty on a miss).
        suggested_identifier: Check-digit-correct form of the container
            candidate, when it differs from what was read.
        raw_text: Text the engine returned for each attempt.
    """

    extraction: OcrExtractionResult = field(default_factory=OcrExtractionResult)
    suggested_identifier: str | None = None
    raw_text: tuple[str, ...] = ()

    @property
    def notice(self) -> str:
        """Message shown to the operator after recognition."""
        if self.extraction.container:
            message = f"Container number recognized: {self.extraction.container}"
            if self.suggested_identifier:
                message += f" (check digit suggests {self.suggested_identifier})"
            return message
        if self.extraction.plate:
            return f"Plate recognized: {self.extraction.plate}"
        return "Nothing recognized. Enter the container number manually."


class ContainerTextRecognizer:
    """
    Reads container numbers and plates from gate photos.

    The container code is usually stencilled on the upper right of
    the door, so that region is read first; the full frame is read
    only when the region yields no container number. Engine failures
    are reported as "nothing recognized", never raised.

    Example:
        recognizer = ContainerTextRecognizer()
        outcome = await recognizer.recognize(photo_bytes)
    """

    def __init__(
        self,
        ocr_engine: OCREngine | None = None,
        extractor: OcrTextExtractor | None = None,
        validator: ContainerNumberValidator | None = None,
        focus_left: float | None = None,
        focus_height: float | None = None,
    ):
        """
        Initialize recognizer.

        Args:
            ocr_engine: Optional custom OCR engine.
            extractor: Optional extractor with a custom owner prefix list.
            validator: Optional check-digit validator.
            focus_left: Left edge of the code region as a fraction of width.
            focus_height: Height of the code region as a fraction of height.
        """
        settings = get_settings()

        self._ocr_engine = ocr_engine or get_ocr_engine()
        self._extractor = extractor or OcrTextExtractor(
            owner_prefixes=settings.owner_prefixes,
        )
        self._validator = validator or ContainerNumberValidator()
        self._focus_left = settings.ocr_focus_left if focus_left is None else focus_left
        self._focus_height = (
            settings.ocr_focus_height if focus_height is None else focus_height
        )

    async def recognize(self, image_bytes: bytes) -> RecognitionOutcome:
        """
        Recognize a container number or plate in a photo.

        Args:
            image_bytes: Encoded photo (JPEG, PNG, ...).

        Returns:
            RecognitionOutcome: Candidates found; empty on any failure.
        """
        image = await run_in_threadpool(self._decode_image, image_bytes)
        if image is None:
            logger.warning("ocr_recognition_miss", reason="undecodable_image")
            return RecognitionOutcome()

        texts: list[str] = []
        try:
            region = self._focus_region(image)
            if region is not None:
                result = await run_in_threadpool(self._ocr_engine.extract_text, region)
                texts.append(result.raw_text)

            if not texts or not self._extractor.extract(texts[0]).container:
                result = await run_in_threadpool(self._ocr_engine.extract_text, image)
                texts.append(result.raw_text)
        except Exception as e:
            logger.error("ocr_recognition_failed", error=str(e))
            return RecognitionOutcome(raw_text=tuple(texts))

        extraction = self._extractor.extract_first(texts)

        suggested = None
        if extraction.container:
            validation = self._validator.diagnose(extraction.container)
            if validation.was_corrected:
                suggested = validation.identifier

        if extraction.is_empty:
            logger.info("ocr_recognition_miss", attempts=len(texts))
        else:
            logger.info(
                "ocr_recognition_complete",
                container=extraction.container,
                plate=extraction.plate,
                suggested=suggested,
            )

        return RecognitionOutcome(
            extraction=extraction,
            suggested_identifier=suggested,
            raw_text=tuple(texts),
        )

    def _decode_image(self, image_bytes: bytes) -> np.ndarray | None:
        """Decode image bytes to numpy array."""
        try:
            nparr = np.frombuffer(image_bytes, np.uint8)
            return cv2.imdecode(nparr, cv2.IMREAD_COLOR)
        except Exception as e:
            logger.error("image_decode_failed", error=str(e))
            return None

    def _focus_region(self, image: np.ndarray) -> np.ndarray | None:
        """Upper-right crop where the container code is expected."""
        height, width = image.shape[:2]
        left = int(width * self._focus_left)
        bottom = int(height * self._focus_height)

        region = image[0:bottom, left:width]
        if region.size == 0:
            return None
        return region


def check_submission(
    identifier: str,
    photo: CapturedImage | None,
    action: GateAction,
    plate: str,
    driver: str,
) -> GateRejection | None:
    """
    Check that a gate event has everything it needs before writing.

    Returns:
        GateRejection: First unmet requirement, or None if complete.
    """
    if not identifier.strip():
        return GateRejection(
            RejectionReason.MISSING_IDENTIFIER,
            "Enter the container number.",
        )
    if photo is None or not photo.data:
        return GateRejection(
            RejectionReason.MISSING_PHOTO,
            "Capture a photo of the container. The photo is required.",
        )
    if action is GateAction.ENTRADA and not (plate.strip() and driver.strip()):
        return GateRejection(
            RejectionReason.MISSING_PLATE_AND_DRIVER,
            "Plate and driver are required for entry.",
        )
    return None


class GateReconciler:
    """
    Writes a confirmed gate event to the container store.

    Entry updates an existing container or creates one; exit only
    updates an existing container. The captured photo is attached in
    every successful case.

    Example:
        reconciler = GateReconciler(ContainerRepository(session))
        result = await reconciler.submit(event)
    """

    def __init__(
        self,
        store: ContainerRepository,
        storage: ImageStorage | None = None,
        guard: SubmissionGuard | None = None,
        placeholder_armador: str | None = None,
    ):
        """
        Initialize reconciler.

        Args:
            store: Container record store.
            storage: Optional custom photo storage.
            guard: Optional submission guard (defaults to the global one).
            placeholder_armador: Armador stored on newly created containers.
        """
        self._store = store
        self._storage = storage or ImageStorage()
        self._guard = guard or get_submission_guard()
        self._placeholder_armador = (
            placeholder_armador
            if placeholder_armador is not None
            else get_settings().placeholder_armador
        )

    async def submit(self, event: GateEvent) -> GateSubmissionResult | GateRejection:
        """
        Reconcile a gate event against the container store.

        Args:
            event: Confirmed gate event.

        Returns:
            GateSubmissionResult: Created or updated record.
            GateRejection: Missing data, unknown container for exit,
                or a storage/database failure.
        """
        rejection = check_submission(
            event.identifier,
            event.photo,
            event.action,
            event.plate,
            event.driver,
        )
        if rejection is not None:
            logger.info("gate_submission_rejected", reason=rejection.reason.value)
            return rejection

        identifier = event.lookup_key
        idempotency = self._guard.idempotency
        key = idempotency.compute_key(identifier, event.action, event.photo.data)

        async with self._guard.hold(identifier):
            if idempotency.is_duplicate(key):
                cached = idempotency.get_cached_response(key)
                if cached is not None:
                    logger.info(
                        "gate_submission_duplicate",
                        container=identifier,
                        action=event.action.value,
                    )
                    return replace(cached, duplicate=True)

            result = await self._reconcile(identifier, event)

            if isinstance(result, GateSubmissionResult):
                idempotency.mark_seen(key, result)

        return result

    async def _reconcile(
        self,
        identifier: str,
        event: GateEvent,
    ) -> GateSubmissionResult | GateRejection:
        attachment = None
        try:
            existing = await self._store.find_by_identifier(identifier)

            if event.action is GateAction.BAIXA and existing is None:
                logger.warning("gate_exit_unknown_container", container=identifier)
                return GateRejection(
                    RejectionReason.CONTAINER_NOT_FOUND,
                    f"Container {identifier} not found for exit.",
                )

            attachment = await run_in_threadpool(
                self._storage.save,
                event.photo.data,
                event.photo.content_type,
                identifier,
                event.action,
                event.timestamp,
            )

            if existing is None:
                record = await self._store.create(
                    self._new_record(identifier, event, attachment),
                )
                outcome = SubmissionOutcome.CREATED
                message = f"New container {identifier} registered."
            else:
                record = await self._store.update(
                    existing.id,
                    self._changes(event),
                    attach=attachment,
                )
                outcome = SubmissionOutcome.UPDATED
                message = (
                    f"Entry registered for container {identifier}."
                    if event.action is GateAction.ENTRADA
                    else f"Exit registered for container {identifier}."
                )

            await self._store.commit()

        except (StorageError, SQLAlchemyError) as e:
            logger.error(
                "gate_submission_failed",
                container=identifier,
                action=event.action.value,
                error=str(e),
            )
            await self._store.rollback()
            if attachment is not None:
                await run_in_threadpool(self._storage.delete, attachment.path)
            return GateRejection(
                RejectionReason.EXTERNAL_FAILURE,
                f"Could not save the gate event: {e}",
            )

        logger.info(
            f"gate_submission_{outcome.value}",
            container=identifier,
            action=event.action.value,
            record_id=record.id,
            files=len(record.files),
        )

        return GateSubmissionResult(outcome=outcome, record=record, message=message)

    def _changes(self, event: GateEvent) -> dict[str, str]:
        """Fields written for the event's action."""
        today = event.timestamp.strftime(DATE_FORMAT)

        if event.action is GateAction.ENTRADA:
            return {
                "entry_date": today,
                "entry_plate": event.plate.strip(),
                "entry_driver": event.driver.strip(),
                "status": ENTRY_STATUS,
            }

        return {
            "exit_date": today,
            "exit_plate": event.plate.strip(),
            "exit_driver": event.driver.strip(),
            "status": EXIT_STATUS,
        }

    def _new_record(
        self,
        identifier: str,
        event: GateEvent,
        attachment: ContainerFile,
    ) -> ContainerRecord:
        """Container first seen at the gate; unknown numerics stay at zero."""
        return ContainerRecord(
            container_number=identifier,
            armador=self._placeholder_armador,
            return_depot=self._placeholder_armador,
            files=[attachment],
            **self._changes(event),
        )


@dataclass
class GateIntakeSession:
    """
    Workflow state of one operator's gate interaction.

    Holds what the operator has captured and typed until the event is
    submitted. A successful submission resets everything; a rejected
    or failed one keeps the fields and photo so the operator can fix
    and retry.
    """

    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: IntakeState = IntakeState.IDLE
    action: GateAction = GateAction.ENTRADA
    identifier: str = ""
    plate: str = ""
    driver: str = ""
    image: CapturedImage | None = None
    notice: str = ""
    suggested_identifier: str | None = None
    updated_at: datetime = field(default_factory=datetime.now)
    _generation: int = 0
    _typed_during_recognition: set[str] = field(default_factory=set)

    async def capture(
        self,
        data: bytes,
        content_type: str,
        recognizer: ContainerTextRecognizer,
    ) -> GateRejection | None:
        """
        Capture a photo and populate fields from what it shows.

        Args:
            data: Photo bytes.
            content_type: MIME type reported by the client.
            recognizer: Text recognizer for the photo.

        Returns:
            GateRejection: If the upload is not an image, else None.

        Raises:
            InvalidTransitionError: If a capture or submission is in progress.
        """
        self._require("capture", IntakeState.IDLE, IntakeState.FIELDS_POPULATED)

        if not (content_type or "").lower().startswith("image/"):
            logger.info("gate_capture_rejected", content_type=content_type)
            return GateRejection(
                RejectionReason.INVALID_FILE_TYPE,
                "Invalid file type. Select an image.",
            )

        previous = self.state
        self._move(IntakeState.CAPTURING)
        self.image = CapturedImage(data=data, content_type=content_type)
        self._typed_during_recognition.clear()

        generation = self._generation
        self._move(IntakeState.RECOGNIZING)
        try:
            outcome = await recognizer.recognize(data)
        except BaseException:
            if generation == self._generation:
                self._move(previous)
            raise

        if generation != self._generation:
            # Abandoned while recognition was running
            return None

        self._populate(outcome)
        self._move(IntakeState.FIELDS_POPULATED)
        return None

    def edit(
        self,
        identifier: str | None = None,
        plate: str | None = None,
        driver: str | None = None,
        action: GateAction | None = None,
    ) -> None:
        """
        Hand-edit fields; allowed at any point before submission.

        Raises:
            InvalidTransitionError: While a submission is in progress.
        """
        if self.state is IntakeState.SUBMITTING:
            raise InvalidTransitionError("edit", self.state)

        typed: set[str] = set()
        if identifier is not None:
            self.identifier = identifier
            self.suggested_identifier = None
            typed.add("identifier")
        if plate is not None:
            self.plate = plate
            typed.add("plate")
        if driver is not None:
            self.driver = driver
        if action is not None:
            self.action = action

        if self.state in (IntakeState.CAPTURING, IntakeState.RECOGNIZING):
            self._typed_during_recognition |= typed
        self.updated_at = datetime.now()

    async def submit(
        self,
        reconciler: GateReconciler,
    ) -> GateSubmissionResult | GateRejection:
        """
        Confirm the interaction and write it to the store.

        Returns:
            GateSubmissionResult: On success; the session is back to IDLE.
            GateRejection: On missing data or failure; fields are kept.

        Raises:
            InvalidTransitionError: While capturing, recognizing or submitting.
        """
        self._require("submit", IntakeState.IDLE, IntakeState.FIELDS_POPULATED)

        rejection = check_submission(
            self.identifier,
            self.image,
            self.action,
            self.plate,
            self.driver,
        )
        if rejection is not None:
            self.notice = rejection.message
            return rejection

        event = GateEvent(
            identifier=self.identifier,
            action=self.action,
            photo=self.image,
            plate=self.plate,
            driver=self.driver,
        )

        previous = self.state
        self._move(IntakeState.SUBMITTING)
        try:
            result = await reconciler.submit(event)
        except BaseException:
            self._move(previous)
            raise

        if isinstance(result, GateRejection):
            self._move(previous)
            self.notice = result.message
            return result

        self._reset(notice=result.message)
        return result

    def abandon(self) -> None:
        """
        Discard the interaction and return to IDLE.

        Raises:
            InvalidTransitionError: Once submission has started.
        """
        if self.state is IntakeState.SUBMITTING:
            raise InvalidTransitionError("abandon", self.state)
        self._reset()

    def _populate(self, outcome: RecognitionOutcome) -> None:
        # What the operator typed while recognition ran is kept
        typed = self._typed_during_recognition
        extraction = outcome.extraction
        if extraction.container:
            if "identifier" not in typed:
                self.identifier = extraction.container
                self.suggested_identifier = outcome.suggested_identifier
        elif extraction.plate:
            if "plate" not in typed:
                self.plate = extraction.plate
        typed.clear()
        self.notice = outcome.notice

    def _reset(self, notice: str = "") -> None:
        """Single terminal transition back to IDLE with all fields cleared."""
        self._generation += 1
        self.state = IntakeState.IDLE
        self.identifier = ""
        self.plate = ""
        self.driver = ""
        self.image = None
        self.suggested_identifier = None
        self._typed_during_recognition.clear()
        self.notice = notice
        self.updated_at = datetime.now()

    def _require(self, action: str, *allowed: IntakeState) -> None:
        if self.state not in allowed:
            raise InvalidTransitionError(action, self.state)

    def _move(self, state: IntakeState) -> None:
        self.state = state
        self.updated_at = datetime.now()


class GateSessionRegistry:
    """
    In-memory registry of open gate interactions, keyed by session id.

    Sessions left untouched for longer than the idle TTL are dropped
    along with their photo, unless a submission is in progress.
    """

    def __init__(self, idle_ttl_seconds: int | None = None):
        if idle_ttl_seconds is None:
            idle_ttl_seconds = get_settings().gate_session_ttl_seconds
        self.idle_ttl_seconds = idle_ttl_seconds
        self._sessions: dict[str, GateIntakeSession] = {}

    def create(self) -> GateIntakeSession:
        self._cleanup_expired()
        session = GateIntakeSession()
        self._sessions[session.id] = session
        logger.debug("gate_session_opened", session_id=session.id)
        return session

    def get(self, session_id: str) -> GateIntakeSession | None:
        self._cleanup_expired()
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> GateIntakeSession | None:
        return self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)

    def _cleanup_expired(self) -> None:
        cutoff = datetime.now() - timedelta(seconds=self.idle_ttl_seconds)

        expired_ids = [
            session_id for session_id, session in self._sessions.items()
            if session.updated_at < cutoff and session.state is not IntakeState.SUBMITTING
        ]

        for session_id in expired_ids:
            del self._sessions[session_id]
            logger.info("gate_session_expired", session_id=session_id)


# Global session registry instance
_gate_session_registry: GateSessionRegistry | None = None


def get_gate_session_registry() -> GateSessionRegistry:
    """Get the global gate session registry."""
    global _gate_session_registry
    if _gate_session_registry is None:
        _gate_session_registry = GateSessionRegistry()
    return _gate_session_registry
