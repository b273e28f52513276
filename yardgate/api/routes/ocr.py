"""
OCR API routes.

Interprets raw recognition text, or recognizes a photo directly,
without touching any container record.
"""

from typing import Annotated

from fastapi import APIRouter, File, HTTPException, UploadFile, status
from pydantic import BaseModel, Field

from yardgate.api.deps import ApiKeyAuth, RateLimited, Recognizer
from yardgate.core.config import get_settings
from yardgate.domain.extraction import OcrTextExtractor
from yardgate.domain.services import ContainerNumberValidator

router = APIRouter(prefix="/ocr", tags=["ocr"])

_validator = ContainerNumberValidator()


class ExtractRequest(BaseModel):
    """Raw text returned by an OCR engine."""

    text: str = Field(..., max_length=4096, examples=["MAX GROSS 30480 KG MSCU 123456 6"])


class ExtractResponse(BaseModel):
    """Container number or plate found in the text."""

    container: str = Field(description="Container candidate, empty if none")
    plate: str = Field(description="Plate candidate, empty if a container was found or none")
    suggested_identifier: str | None = Field(
        default=None,
        description="Check-digit-correct container number when it differs from the candidate",
    )


class RecognizeResponse(ExtractResponse):
    """Recognition result for an uploaded photo."""

    notice: str
    raw_text: list[str]


def _suggest(container: str) -> str | None:
    if not container:
        return None
    validation = _validator.diagnose(container)
    return validation.identifier if validation.was_corrected else None


@router.post(
    "/extract",
    response_model=ExtractResponse,
    summary="Extract container number from OCR text",
)
async def extract_from_text(
    request: ExtractRequest,
    _: ApiKeyAuth,
    __: RateLimited,
) -> ExtractResponse:
    """Find a container number, or failing that a plate, in raw OCR text."""
    extractor = OcrTextExtractor(owner_prefixes=get_settings().owner_prefixes)
    result = extractor.extract(request.text)

    return ExtractResponse(
        container=result.container,
        plate=result.plate,
        suggested_identifier=_suggest(result.container),
    )


@router.post(
    "/recognize",
    response_model=RecognizeResponse,
    summary="Recognize container number in a photo",
    responses={
        400: {"description": "Not an image"},
        413: {"description": "Image too large"},
    },
)
async def recognize_image(
    image: Annotated[UploadFile, File(description="Photo of the container door or truck")],
    recognizer: Recognizer,
    _: ApiKeyAuth,
    __: RateLimited,
) -> RecognizeResponse:
    """Run text recognition on a photo and extract a container number or plate."""
    if not image.content_type or not image.content_type.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Please upload an image.",
        )

    data = await image.read()
    if len(data) > get_settings().max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Image exceeds the upload limit",
        )

    outcome = await recognizer.recognize(data)

    return RecognizeResponse(
        container=outcome.extraction.container,
        plate=outcome.extraction.plate,
        suggested_identifier=outcome.suggested_identifier,
        notice=outcome.notice,
        raw_text=list(outcome.raw_text),
    )
