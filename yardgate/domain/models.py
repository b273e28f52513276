"""
Domain models for the container yard gate service.

These are pure domain objects with no infrastructure dependencies.
They represent the core business concepts and rules.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class GateAction(str, Enum):
    """
    Kind of gate movement being registered.

    ENTRADA: Container arriving at the yard.
    BAIXA: Container leaving the yard (yard exit).
    """

    ENTRADA = "entrada"
    BAIXA = "baixa"


class ReturnStatus(str, Enum):
    """Lifecycle classification derived from free-text record fields."""

    RETURNED = "returned"
    PENDING = "pending"
    IN_USE = "in_use"


class DeadlineStatus(str, Enum):
    """Free-time classification of a container still in use."""

    EXPIRED = "expired"
    EXPIRING = "expiring"
    OK = "ok"


class ValidationFailure(str, Enum):
    """Why a raw container number could not be turned into an identifier."""

    INVALID_LENGTH = "invalid_length"
    INVALID_PREFIX = "invalid_prefix"


class SubmissionOutcome(str, Enum):
    """What a successful gate submission did to the record store."""

    CREATED = "created"
    UPDATED = "updated"


class RejectionReason(str, Enum):
    """
    Recoverable reasons a gate interaction did not go through.

    None of these end the interaction: the operator fixes the
    input and tries again.
    """

    INVALID_FILE_TYPE = "invalid_file_type"
    MISSING_IDENTIFIER = "missing_identifier"
    MISSING_PHOTO = "missing_photo"
    MISSING_PLATE_AND_DRIVER = "missing_plate_and_driver"
    CONTAINER_NOT_FOUND = "container_not_found"
    EXTERNAL_FAILURE = "external_failure"


@dataclass(frozen=True)
class ContainerValidation:
    """
    Result of validating a raw container number.

    Attributes:
        identifier: Check-digit-correct 11-character identifier, or None.
        was_corrected: True if the check digit was appended or replaced.
        failure: Reason for failure when identifier is None.
    """

    identifier: str | None
    was_corrected: bool = False
    failure: ValidationFailure | None = None

    @property
    def is_valid(self) -> bool:
        """Whether an identifier could be produced."""
        return self.identifier is not None


@dataclass(frozen=True)
class OCRResult:
    """
    Raw output of the text recognition engine.

    Attributes:
        raw_text: Text exactly as recognized.
        confidence: Mean engine confidence (0.0 to 1.0).
    """

    raw_text: str
    confidence: float

    def __post_init__(self) -> None:
        """Validate confidence is in valid range."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be between 0 and 1, got {self.confidence}")


@dataclass(frozen=True)
class OcrExtractionResult:
    """
    Container number or plate pulled out of OCR text.

    At most one field is non-empty; the container candidate takes
    precedence. Both empty means nothing usable was recognized.
    """

    container: str = ""
    plate: str = ""

    @property
    def is_empty(self) -> bool:
        """True when recognition produced nothing usable."""
        return not self.container and not self.plate


@dataclass(frozen=True)
class CapturedImage:
    """Photo captured at the gate, kept in memory until submission."""

    data: bytes
    content_type: str

    @property
    def size(self) -> int:
        """Size of the photo in bytes."""
        return len(self.data)


@dataclass(frozen=True)
class GateEvent:
    """
    One physical entry or exit at the gate.

    Built from the operator's confirmed fields at submission time
    and discarded once the record store has been written.

    Attributes:
        identifier: Container number as typed or recognized (not validated).
        action: ENTRADA or BAIXA.
        photo: Captured photo attached as evidence, None if not taken yet.
        plate: Truck plate.
        driver: Driver name.
        timestamp: When the operator confirmed the action.
    """

    identifier: str
    action: GateAction
    photo: CapturedImage | None
    plate: str = ""
    driver: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def lookup_key(self) -> str:
        """Identifier as used to find the record: trimmed and uppercased."""
        return self.identifier.strip().upper()


@dataclass
class ContainerFile:
    """
    File attached to a container record (gate photos, documents).

    Attributes:
        name: Display file name.
        content_type: MIME type.
        size: Size in bytes.
        path: Storage path relative to the storage root.
        uploaded_at: When the file was stored.
        id: Row id (set by database).
    """

    name: str
    content_type: str
    size: int
    path: str
    uploaded_at: datetime = field(default_factory=datetime.utcnow)
    id: int | None = None


@dataclass
class ContainerRecord:
    """
    Domain model for a container tracked in the yard.

    Date fields are free text as entered by operators or imported
    from spreadsheets ("15/03/24", "EMPATIO", ...).
    """

    container_number: str
    armador: str = ""
    status: str = ""
    container_type: str = ""
    operator: str = ""
    entry_date: str = ""
    entry_plate: str = ""
    entry_driver: str = ""
    exit_date: str = ""
    exit_plate: str = ""
    exit_driver: str = ""
    return_depot: str = ""
    origin: str = ""
    demurrage: str = ""
    tare_kg: float = 0.0
    max_gross_kg: float = 0.0
    free_time_days: int = 0
    remaining_days: int = 0
    files: list[ContainerFile] = field(default_factory=list)
    id: int | None = None


@dataclass(frozen=True)
class GateSubmissionResult:
    """Successful gate submission: the record as written and what happened."""

    outcome: SubmissionOutcome
    record: ContainerRecord
    message: str
    duplicate: bool = False


@dataclass(frozen=True)
class GateRejection:
    """Gate interaction that did not go through, with a message for the operator."""

    reason: RejectionReason
    message: str


@dataclass(frozen=True)
class DeadlineSummary:
    """Free-time alert counts for a set of containers."""

    expired: int
    expiring: int

    @property
    def total_alerts(self) -> int:
        """Containers needing attention."""
        return self.expired + self.expiring

    @property
    def is_critical(self) -> bool:
        """At least one container is past its free time."""
        return self.expired > 0


@dataclass(frozen=True)
class ContainerStats:
    """Dashboard counters over the container set."""

    total: int
    returned: int
    pending: int
    expired: int
    by_armador: dict[str, int]
    by_depot: dict[str, int]


@dataclass(frozen=True)
class InventoryItem:
    """Tracking line derived from a container record."""

    container_id: int | None
    container_number: str
    armador: str
    item_type: str
    status: str
    details: str
