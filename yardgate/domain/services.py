"""
Domain services for container number validation and yard status rules.

These services contain pure business logic with no infrastructure
dependencies. They can be easily unit tested.
"""

import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import ClassVar

from yardgate.domain.models import (
    ContainerRecord,
    ContainerStats,
    ContainerValidation,
    DeadlineStatus,
    DeadlineSummary,
    InventoryItem,
    ReturnStatus,
    ValidationFailure,
)

_NON_ALPHANUMERIC = re.compile(r"[^A-Z0-9]")
_DIGITS = "0123456789"
UNSPECIFIED_DEPOT = "Não especificado"


def clean_container_text(text: str) -> str:
    """Uppercase and strip everything that is not A-Z or 0-9."""
    return _NON_ALPHANUMERIC.sub("", (text or "").upper())


@dataclass
class CheckDigitCalculator:
    """
    Computes the ISO 6346 check digit of a container number.

    Letters map to values from 10 upward, skipping 11 and its
    multiples; digits keep their value. Position i is weighted
    by 2**i and the check digit is the weighted sum modulo 11,
    with a remainder of 10 written as 0.

    Example:
        >>> CheckDigitCalculator().compute("CSQU305438")
        3
    """

    LETTER_VALUES: ClassVar[dict[str, int]] = {
        "A": 10, "B": 12, "C": 13, "D": 14, "E": 15, "F": 16, "G": 17,
        "H": 18, "I": 19, "J": 20, "K": 21, "L": 23, "M": 24, "N": 25,
        "O": 26, "P": 27, "Q": 28, "R": 29, "S": 30, "T": 31, "U": 32,
        "V": 34, "W": 35, "X": 36, "Y": 37, "Z": 38,
    }

    PREFIX_LENGTH: ClassVar[int] = 10
    OWNER_CODE_LENGTH: ClassVar[int] = 4

    def compute(self, prefix: str) -> int | None:
        """
        Compute the check digit for a 10-character prefix.

        Args:
            prefix: 4 uppercase letters followed by 6 digits.

        Returns:
            int: Check digit (0-9), or None if the prefix is malformed.
        """
        if prefix is None or len(prefix) != self.PREFIX_LENGTH:
            return None

        total = 0
        for position, char in enumerate(prefix):
            if position < self.OWNER_CODE_LENGTH:
                value = self.LETTER_VALUES.get(char)
                if value is None:
                    return None
            else:
                if char not in _DIGITS:
                    return None
                value = int(char)
            total += value * (2 ** position)

        remainder = total % 11
        return 0 if remainder == 10 else remainder


@dataclass
class ContainerNumberValidator:
    """
    Turns scanned or typed text into a check-digit-correct identifier.

    Ten characters get the check digit appended; eleven characters
    with a wrong final digit get it replaced rather than rejected.
    The result is advisory: callers decide whether to use it.

    Example:
        >>> validator = ContainerNumberValidator()
        >>> validator.validate_and_correct("csqu 305438")
        'CSQU3054383'
        >>> validator.validate_and_correct("CSQU3054389")
        'CSQU3054383'
    """

    calculator: CheckDigitCalculator = field(default_factory=CheckDigitCalculator)

    ACCEPTED_LENGTHS: ClassVar[tuple[int, int]] = (10, 11)

    def diagnose(self, raw: str) -> ContainerValidation:
        """
        Validate raw text and report how the identifier was obtained.

        Args:
            raw: Container number with any case, spacing or separators.

        Returns:
            ContainerValidation: Identifier and correction flag, or failure reason.
        """
        cleaned = clean_container_text(raw)

        if len(cleaned) not in self.ACCEPTED_LENGTHS:
            return ContainerValidation(
                identifier=None,
                failure=ValidationFailure.INVALID_LENGTH,
            )

        prefix = cleaned[:10]
        check_digit = self.calculator.compute(prefix)
        if check_digit is None:
            return ContainerValidation(
                identifier=None,
                failure=ValidationFailure.INVALID_PREFIX,
            )

        expected = f"{prefix}{check_digit}"
        if len(cleaned) == 11 and cleaned[10] == str(check_digit):
            return ContainerValidation(identifier=cleaned)

        return ContainerValidation(identifier=expected, was_corrected=True)

    def validate_and_correct(self, raw: str) -> str | None:
        """
        Return the canonical 11-character identifier, or None.

        Args:
            raw: Container number with any case, spacing or separators.

        Returns:
            str: Check-digit-correct identifier, or None if unusable.
        """
        return self.diagnose(raw).identifier


@dataclass
class ContainerStatusClassifier:
    """
    Classifies a container as returned, pending or in use.

    A recorded exit date is authoritative. Without one, the free-text
    status is searched for keywords used by the yard staff.

    Example:
        >>> classifier = ContainerStatusClassifier()
        >>> classifier.classify("", "RIC OK")
        <ReturnStatus.RETURNED: 'returned'>
    """

    EXIT_DATE_SENTINEL: ClassVar[str] = "EMPATIO"
    RETURNED_KEYWORDS: ClassVar[tuple[str, ...]] = ("ok", "devolvido")
    PENDING_KEYWORDS: ClassVar[tuple[str, ...]] = ("aguardando", "verificar")

    def has_exit_date(self, exit_date: str | None) -> bool:
        """True when the exit date field holds a real date."""
        value = str(exit_date or "").strip().upper()
        return value != "" and value != self.EXIT_DATE_SENTINEL

    def classify(self, exit_date: str | None, status: str | None) -> ReturnStatus:
        """
        Classify a container from its exit date and status fields.

        Args:
            exit_date: Free-text exit date, possibly empty or "EMPATIO".
            status: Free-text status.

        Returns:
            ReturnStatus: RETURNED, PENDING or IN_USE.
        """
        if self.has_exit_date(exit_date):
            return ReturnStatus.RETURNED

        status_lower = str(status or "").lower()
        if any(keyword in status_lower for keyword in self.RETURNED_KEYWORDS):
            return ReturnStatus.RETURNED
        if any(keyword in status_lower for keyword in self.PENDING_KEYWORDS):
            return ReturnStatus.PENDING
        return ReturnStatus.IN_USE

    def is_returned(self, exit_date: str | None, status: str | None) -> bool:
        """Whether the container has been returned."""
        return self.classify(exit_date, status) is ReturnStatus.RETURNED

    def classify_record(self, record: ContainerRecord) -> ReturnStatus:
        """Classify a container record."""
        return self.classify(record.exit_date, record.status)


@dataclass
class FreeTimeEvaluator:
    """
    Flags containers whose free time has run out or is about to.

    Attributes:
        warning_days: Remaining days at or below which a container is EXPIRING.
    """

    warning_days: int = 3
    classifier: ContainerStatusClassifier = field(default_factory=ContainerStatusClassifier)

    def classify(self, remaining_days: int) -> DeadlineStatus:
        """
        Classify remaining free-time days.

        Args:
            remaining_days: Days left before demurrage applies.

        Returns:
            DeadlineStatus: EXPIRED, EXPIRING or OK.
        """
        if remaining_days <= 0:
            return DeadlineStatus.EXPIRED
        if remaining_days <= self.warning_days:
            return DeadlineStatus.EXPIRING
        return DeadlineStatus.OK

    def classify_record(self, record: ContainerRecord) -> DeadlineStatus:
        """Classify a record; returned containers are never overdue."""
        if self.classifier.classify_record(record) is ReturnStatus.RETURNED:
            return DeadlineStatus.OK
        return self.classify(record.remaining_days)

    def summarize(self, records: Iterable[ContainerRecord]) -> DeadlineSummary:
        """Count expired and expiring containers."""
        counts = Counter(self.classify_record(record) for record in records)
        return DeadlineSummary(
            expired=counts[DeadlineStatus.EXPIRED],
            expiring=counts[DeadlineStatus.EXPIRING],
        )


@dataclass
class ContainerStatsCalculator:
    """Computes the dashboard counters over a set of containers."""

    classifier: ContainerStatusClassifier = field(default_factory=ContainerStatusClassifier)
    evaluator: FreeTimeEvaluator = field(default_factory=FreeTimeEvaluator)

    def compute(self, records: Iterable[ContainerRecord]) -> ContainerStats:
        records = list(records)
        statuses = Counter(self.classifier.classify_record(r) for r in records)
        deadlines = self.evaluator.summarize(records)
        by_armador = Counter((r.armador or "N/A") for r in records)
        # "-" marks a record with no return depot to report
        by_depot = Counter(
            depot for depot in ((r.return_depot or UNSPECIFIED_DEPOT) for r in records)
            if depot != "-"
        )

        return ContainerStats(
            total=len(records),
            returned=statuses[ReturnStatus.RETURNED],
            pending=statuses[ReturnStatus.PENDING],
            expired=deadlines.expired,
            by_armador=dict(by_armador),
            by_depot=dict(by_depot),
        )


@dataclass
class InventoryGenerator:
    """
    Derives inventory tracking lines from container records.

    A container with a recorded exit gets a yard-exit line; a returned
    container also gets a return line. Containers still in use produce
    no lines.
    """

    classifier: ContainerStatusClassifier = field(default_factory=ContainerStatusClassifier)

    STATUS_LABELS: ClassVar[dict[ReturnStatus, str]] = {
        ReturnStatus.RETURNED: "Devolvido (RIC OK)",
        ReturnStatus.PENDING: "Aguardando Devolução",
        ReturnStatus.IN_USE: "Em Uso",
    }
    YARD_EXIT_ITEM: ClassVar[str] = "Baixa Pátio"
    RETURN_ITEM: ClassVar[str] = "Devolução"

    def generate(self, records: Iterable[ContainerRecord]) -> list[InventoryItem]:
        items: list[InventoryItem] = []

        for record in records:
            return_status = self.classifier.classify_record(record)
            label = self.STATUS_LABELS[return_status]

            if self.classifier.has_exit_date(record.exit_date):
                items.append(self._item(
                    record,
                    self.YARD_EXIT_ITEM,
                    label,
                    f"Saída SJP registrada em: {record.exit_date}",
                ))

            if return_status is ReturnStatus.RETURNED:
                items.append(self._item(
                    record,
                    self.RETURN_ITEM,
                    label,
                    f"Status de devolução: {record.status}",
                ))

        return items

    @staticmethod
    def _item(
        record: ContainerRecord,
        item_type: str,
        status: str,
        details: str,
    ) -> InventoryItem:
        return InventoryItem(
            container_id=record.id,
            container_number=record.container_number,
            armador=record.armador,
            item_type=item_type,
            status=status,
            details=details,
        )


_calculator = CheckDigitCalculator()
_validator = ContainerNumberValidator(calculator=_calculator)
_classifier = ContainerStatusClassifier()


def compute_check_digit(prefix: str) -> int | None:
    """ISO 6346 check digit of a 10-character prefix, or None if malformed."""
    return _calculator.compute(prefix)


def validate_and_correct_identifier(raw: str) -> str | None:
    """Check-digit-correct 11-character identifier for raw text, or None."""
    return _validator.validate_and_correct(raw)


def is_returned(exit_date: str | None, status: str | None) -> bool:
    """Whether a container counts as returned."""
    return _classifier.is_returned(exit_date, status)
