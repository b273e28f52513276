"""Domain layer package - business rules and core models."""

from yardgate.domain.extraction import (
    DEFAULT_OWNER_PREFIXES,
    OcrTextExtractor,
    extract_from_ocr_text,
)
from yardgate.domain.models import (
    CapturedImage,
    ContainerFile,
    ContainerRecord,
    ContainerStats,
    ContainerValidation,
    DeadlineStatus,
    DeadlineSummary,
    GateAction,
    GateEvent,
    GateRejection,
    GateSubmissionResult,
    InventoryItem,
    OCRResult,
    OcrExtractionResult,
    RejectionReason,
    ReturnStatus,
    SubmissionOutcome,
    ValidationFailure,
)
from yardgate.domain.services import (
    CheckDigitCalculator,
    ContainerNumberValidator,
    ContainerStatsCalculator,
    ContainerStatusClassifier,
    FreeTimeEvaluator,
    InventoryGenerator,
    compute_check_digit,
    is_returned,
    validate_and_correct_identifier,
)

__all__ = [
    # Models
    "CapturedImage",
    "ContainerFile",
    "ContainerRecord",
    "ContainerStats",
    "ContainerValidation",
    "DeadlineStatus",
    "DeadlineSummary",
    "GateAction",
    "GateEvent",
    "GateRejection",
    "GateSubmissionResult",
    "InventoryItem",
    "OCRResult",
    "OcrExtractionResult",
    "RejectionReason",
    "ReturnStatus",
    "SubmissionOutcome",
    "ValidationFailure",
    # Services
    "CheckDigitCalculator",
    "ContainerNumberValidator",
    "ContainerStatsCalculator",
    "ContainerStatusClassifier",
    "FreeTimeEvaluator",
    "InventoryGenerator",
    "compute_check_digit",
    "is_returned",
    "validate_and_correct_identifier",
    # Extraction
    "DEFAULT_OWNER_PREFIXES",
    "OcrTextExtractor",
    "extract_from_ocr_text",
]
