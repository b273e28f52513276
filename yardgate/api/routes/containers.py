"""
Container API routes.

Provides container number validation, check-digit lookup, and
read access to the yard's container records.
"""

from datetime import datetime

from fastapi import APIRouter, HTTPException, Path, Query, Response, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from yardgate.api.deps import ApiKeyAuth, QueryService, RateLimited, Storage
from yardgate.core.logging import get_logger
from yardgate.domain.models import (
    ContainerRecord,
    DeadlineStatus,
    ReturnStatus,
    ValidationFailure,
)
from yardgate.domain.services import (
    ContainerNumberValidator,
    ContainerStatusClassifier,
    compute_check_digit,
)
from yardgate.infrastructure.storage.storage import StorageError

logger = get_logger(__name__)

router = APIRouter(prefix="/containers", tags=["containers"])

_validator = ContainerNumberValidator()
_classifier = ContainerStatusClassifier()


class ContainerFileResponse(BaseModel):
    """Attachment of a container record."""

    id: int | None
    name: str
    content_type: str
    size: int
    path: str
    uploaded_at: datetime


class ContainerResponse(BaseModel):
    """Response model for a container record."""

    id: int | None
    container_number: str = Field(examples=["CSQU3054383"])
    armador: str
    status: str
    return_status: ReturnStatus
    container_type: str
    operator: str
    entry_date: str
    entry_plate: str
    entry_driver: str
    exit_date: str
    exit_plate: str
    exit_driver: str
    return_depot: str
    origin: str
    demurrage: str
    tare_kg: float
    max_gross_kg: float
    free_time_days: int
    remaining_days: int
    files: list[ContainerFileResponse]

    @classmethod
    def from_record(cls, record: ContainerRecord) -> "ContainerResponse":
        return cls(
            id=record.id,
            container_number=record.container_number,
            armador=record.armador,
            status=record.status,
            return_status=_classifier.classify_record(record),
            container_type=record.container_type,
            operator=record.operator,
            entry_date=record.entry_date,
            entry_plate=record.entry_plate,
            entry_driver=record.entry_driver,
            exit_date=record.exit_date,
            exit_plate=record.exit_plate,
            exit_driver=record.exit_driver,
            return_depot=record.return_depot,
            origin=record.origin,
            demurrage=record.demurrage,
            tare_kg=record.tare_kg,
            max_gross_kg=record.max_gross_kg,
            free_time_days=record.free_time_days,
            remaining_days=record.remaining_days,
            files=[
                ContainerFileResponse(
                    id=f.id,
                    name=f.name,
                    content_type=f.content_type,
                    size=f.size,
                    path=f.path,
                    uploaded_at=f.uploaded_at,
                )
                for f in record.files
            ],
        )


class ContainerListResponse(BaseModel):
    """Response for listing containers."""

    containers: list[ContainerResponse]
    count: int


class ValidateRequest(BaseModel):
    """Raw container number as typed or scanned."""

    raw: str = Field(..., max_length=64, examples=["csqu 305438"])


class ValidateResponse(BaseModel):
    """Result of validating a container number."""

    raw: str
    identifier: str | None = Field(
        description="Check-digit-correct identifier, if one could be produced",
        examples=["CSQU3054383"],
    )
    valid: bool
    corrected: bool = Field(description="Check digit was appended or replaced")
    failure: ValidationFailure | None = None


class CheckDigitResponse(BaseModel):
    """Check digit of a 10-character prefix."""

    prefix: str
    check_digit: int = Field(ge=0, le=9)


class StatsResponse(BaseModel):
    """Dashboard counters."""

    total: int
    returned: int
    pending: int
    expired: int
    by_armador: dict[str, int]
    by_depot: dict[str, int]


class DeadlinesResponse(BaseModel):
    """Containers past or near the end of their free time."""

    expired_count: int
    expiring_count: int
    is_critical: bool
    expired: list[ContainerResponse]
    expiring: list[ContainerResponse]


@router.post(
    "/validate",
    response_model=ValidateResponse,
    summary="Validate container number",
    description="Clean a raw container number and append or repair its ISO 6346 check digit.",
)
async def validate_container_number(
    request: ValidateRequest,
    _: ApiKeyAuth,
    __: RateLimited,
) -> ValidateResponse:
    """Validate and correct a container number."""
    result = _validator.diagnose(request.raw)

    return ValidateResponse(
        raw=request.raw,
        identifier=result.identifier,
        valid=result.is_valid,
        corrected=result.was_corrected,
        failure=result.failure,
    )


@router.get(
    "/check-digit/{prefix}",
    response_model=CheckDigitResponse,
    summary="Compute check digit",
    responses={422: {"description": "Prefix is not 4 letters and 6 digits"}},
)
async def get_check_digit(
    _: ApiKeyAuth,
    __: RateLimited,
    prefix: str = Path(..., min_length=10, max_length=10),
) -> CheckDigitResponse:
    """Compute the check digit of a 10-character prefix."""
    prefix = prefix.upper()
    digit = compute_check_digit(prefix)

    if digit is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Prefix must be 4 letters followed by 6 digits",
        )

    return CheckDigitResponse(prefix=prefix, check_digit=digit)


@router.get(
    "",
    response_model=ContainerListResponse,
    summary="List containers",
)
async def list_containers(
    service: QueryService,
    _: ApiKeyAuth,
    __: RateLimited,
    return_status: ReturnStatus | None = Query(default=None, alias="status"),
    deadline: DeadlineStatus | None = None,
    armador: str | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> ContainerListResponse:
    """List containers, optionally filtered by return status, deadline or armador."""
    records = await service.list_containers(
        status=return_status,
        deadline=deadline,
        armador=armador,
        limit=limit,
        offset=offset,
    )

    return ContainerListResponse(
        containers=[ContainerResponse.from_record(r) for r in records],
        count=len(records),
    )


@router.get(
    "/stats",
    response_model=StatsResponse,
    summary="Dashboard counters",
)
async def get_stats(
    service: QueryService,
    _: ApiKeyAuth,
    __: RateLimited,
) -> StatsResponse:
    """Totals of returned, pending and expired containers."""
    stats = await service.stats()

    return StatsResponse(
        total=stats.total,
        returned=stats.returned,
        pending=stats.pending,
        expired=stats.expired,
        by_armador=stats.by_armador,
        by_depot=stats.by_depot,
    )


@router.get(
    "/deadlines",
    response_model=DeadlinesResponse,
    summary="Free-time alerts",
)
async def get_deadlines(
    service: QueryService,
    _: ApiKeyAuth,
    __: RateLimited,
) -> DeadlinesResponse:
    """Containers whose free time has expired or is about to."""
    report = await service.deadlines()

    return DeadlinesResponse(
        expired_count=report.summary.expired,
        expiring_count=report.summary.expiring,
        is_critical=report.summary.is_critical,
        expired=[ContainerResponse.from_record(r) for r in report.expired],
        expiring=[ContainerResponse.from_record(r) for r in report.expiring],
    )


@router.get(
    "/{number}",
    response_model=ContainerResponse,
    summary="Get container",
    responses={404: {"description": "Container not found"}},
)
async def get_container(
    number: str,
    service: QueryService,
    _: ApiKeyAuth,
    __: RateLimited,
) -> ContainerResponse:
    """Get a container by number."""
    record = await service.get_container(number)

    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Container {number.strip().upper()} not found",
        )

    return ContainerResponse.from_record(record)


@router.get(
    "/{number}/files/{file_id}",
    response_class=Response,
    summary="Download attachment",
    responses={404: {"description": "Container or file not found"}},
)
async def get_container_file(
    number: str,
    file_id: int,
    service: QueryService,
    storage: Storage,
    _: ApiKeyAuth,
) -> Response:
    """Download a photo or document attached to a container."""
    record = await service.get_container(number)
    files = record.files if record is not None else []
    attachment = next((f for f in files if f.id == file_id), None)

    if attachment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found",
        )

    try:
        data = await run_in_threadpool(storage.load, attachment.path)
    except StorageError as e:
        logger.error("attachment_read_failed", file_id=file_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found",
        )

    return Response(content=data, media_type=attachment.content_type)
