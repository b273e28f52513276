"""
Gate intake API routes.

Each gate terminal opens a session, captures a photo, confirms or
edits the recognized fields, and submits an entrada or baixa.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, File, HTTPException, Response, UploadFile, status
from pydantic import BaseModel, Field

from yardgate.api.deps import ApiKeyAuth, RateLimited, Recognizer, Reconciler, Registry
from yardgate.api.routes.containers import ContainerResponse
from yardgate.application.gate_intake import (
    GateIntakeSession,
    GateSessionRegistry,
    IntakeState,
    InvalidTransitionError,
)
from yardgate.core.config import get_settings
from yardgate.core.logging import bind_gate_session, get_logger
from yardgate.domain.models import GateAction, GateRejection, RejectionReason, SubmissionOutcome

logger = get_logger(__name__)

router = APIRouter(prefix="/gate/sessions", tags=["gate"])

REJECTION_STATUS = {
    RejectionReason.INVALID_FILE_TYPE: status.HTTP_400_BAD_REQUEST,
    RejectionReason.CONTAINER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RejectionReason.EXTERNAL_FAILURE: status.HTTP_502_BAD_GATEWAY,
}


class GateSessionResponse(BaseModel):
    """Current state of a gate interaction."""

    id: str
    state: IntakeState
    action: GateAction
    identifier: str
    plate: str
    driver: str
    has_photo: bool
    notice: str
    suggested_identifier: str | None = None
    updated_at: datetime

    @classmethod
    def from_session(cls, session: GateIntakeSession) -> "GateSessionResponse":
        return cls(
            id=session.id,
            state=session.state,
            action=session.action,
            identifier=session.identifier,
            plate=session.plate,
            driver=session.driver,
            has_photo=session.image is not None,
            notice=session.notice,
            suggested_identifier=session.suggested_identifier,
            updated_at=session.updated_at,
        )


class GateSessionUpdate(BaseModel):
    """Hand-edited fields."""

    identifier: str | None = Field(None, max_length=32)
    plate: str | None = Field(None, max_length=16)
    driver: str | None = Field(None, max_length=100)
    action: GateAction | None = None


class GateSubmitResponse(BaseModel):
    """Result of a successful submission."""

    outcome: SubmissionOutcome
    message: str
    duplicate: bool
    record: ContainerResponse


def _get_or_404(registry: GateSessionRegistry, session_id: str) -> GateIntakeSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Gate session not found",
        )
    bind_gate_session(session_id)
    return session


def _conflict(e: InvalidTransitionError) -> HTTPException:
    logger.warning("gate_transition_rejected", action=e.action, state=e.state.value)
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


def _rejected(rejection: GateRejection) -> HTTPException:
    return HTTPException(
        status_code=REJECTION_STATUS.get(
            rejection.reason,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
        ),
        detail={"reason": rejection.reason.value, "message": rejection.message},
    )


@router.post(
    "",
    response_model=GateSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open gate session",
)
async def open_session(
    registry: Registry,
    _: ApiKeyAuth,
    __: RateLimited,
) -> GateSessionResponse:
    """Start a new gate interaction."""
    session = registry.create()
    bind_gate_session(session.id)
    return GateSessionResponse.from_session(session)


@router.get(
    "/{session_id}",
    response_model=GateSessionResponse,
    summary="Get gate session",
)
async def get_session_state(
    session_id: str,
    registry: Registry,
    _: ApiKeyAuth,
) -> GateSessionResponse:
    """Current state and fields of a gate interaction."""
    return GateSessionResponse.from_session(_get_or_404(registry, session_id))


@router.post(
    "/{session_id}/capture",
    response_model=GateSessionResponse,
    summary="Capture gate photo",
    responses={
        400: {"description": "Not an image"},
        409: {"description": "Capture or submission already in progress"},
        413: {"description": "Image too large"},
    },
)
async def capture_photo(
    session_id: str,
    image: Annotated[UploadFile, File(description="Photo of the container door or truck")],
    registry: Registry,
    recognizer: Recognizer,
    _: ApiKeyAuth,
    __: RateLimited,
) -> GateSessionResponse:
    """
    Attach a photo and populate the fields from what it shows.

    The container number is filled in when recognized, otherwise the
    plate. When nothing is recognized the notice asks for manual entry.
    """
    session = _get_or_404(registry, session_id)

    data = await image.read()
    if len(data) > get_settings().max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Image exceeds the upload limit",
        )

    try:
        rejection = await session.capture(data, image.content_type or "", recognizer)
    except InvalidTransitionError as e:
        raise _conflict(e)

    if rejection is not None:
        raise _rejected(rejection)

    return GateSessionResponse.from_session(session)


@router.patch(
    "/{session_id}",
    response_model=GateSessionResponse,
    summary="Edit gate session fields",
)
async def edit_session(
    session_id: str,
    request: GateSessionUpdate,
    registry: Registry,
    _: ApiKeyAuth,
    __: RateLimited,
) -> GateSessionResponse:
    """Hand-edit the container number, plate, driver or action."""
    session = _get_or_404(registry, session_id)

    try:
        session.edit(**request.model_dump(exclude_unset=True))
    except InvalidTransitionError as e:
        raise _conflict(e)

    return GateSessionResponse.from_session(session)


@router.post(
    "/{session_id}/submit",
    response_model=GateSubmitResponse,
    summary="Submit gate event",
    responses={
        404: {"description": "Container not found for exit"},
        409: {"description": "Capture or submission in progress"},
        422: {"description": "Missing container number, photo, or plate and driver"},
        502: {"description": "Photo storage or database failure"},
    },
)
async def submit_session(
    session_id: str,
    registry: Registry,
    reconciler: Reconciler,
    _: ApiKeyAuth,
    __: RateLimited,
) -> GateSubmitResponse:
    """
    Register the entrada or baixa.

    On success the session is cleared for the next truck. On any
    rejection the fields and photo are kept so the operator can retry.
    """
    session = _get_or_404(registry, session_id)

    try:
        result = await session.submit(reconciler)
    except InvalidTransitionError as e:
        raise _conflict(e)

    if isinstance(result, GateRejection):
        raise _rejected(result)

    return GateSubmitResponse(
        outcome=result.outcome,
        message=result.message,
        duplicate=result.duplicate,
        record=ContainerResponse.from_record(result.record),
    )


@router.delete(
    "/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Abandon gate session",
)
async def abandon_session(
    session_id: str,
    registry: Registry,
    _: ApiKeyAuth,
) -> Response:
    """Discard the interaction. Not allowed once submission has started."""
    session = _get_or_404(registry, session_id)

    try:
        session.abandon()
    except InvalidTransitionError as e:
        raise _conflict(e)

    registry.remove(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
