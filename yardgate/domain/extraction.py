"""
Container number and plate extraction from raw OCR text.

OCR on a gate photo returns everything painted on the container door
and the truck: owner codes, size/type codes, weights, plates. This
module picks out the one string the operator needs.
"""

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from yardgate.domain.models import OcrExtractionResult

# Owner codes (BIC prefixes, category letter included) commonly seen at the yard.
DEFAULT_OWNER_PREFIXES: tuple[str, ...] = (
    "MSCU", "MEDU", "MSDU", "MSKU", "MRKU", "MAEU", "MRSU", "CMAU",
    "CGMU", "APZU", "HLXU", "HLBU", "HAMU", "ONEU", "EGHU", "EMCU",
    "EISU", "OOLU", "OOCU", "COSU", "CSNU", "CSQU", "CBHU", "CCLU",
    "HDMU", "YMLU", "ZIMU", "SUDU", "TGHU", "TCNU", "TCLU", "TRHU",
    "TEMU", "TLLU", "TTNU", "TRLU", "SEGU", "GESU", "FCIU", "CAIU",
    "DFSU", "BMOU", "UACU", "SZLU", "PONU",
)

_CONTAINER_PATTERN = re.compile(r"[A-Z]{4}[0-9]{7}")
_SERIAL_PATTERN = re.compile(r"(?<![0-9])[0-9]{7}(?![0-9])")
_PLATE_PATTERN = re.compile(r"[A-Z]{3,4}[\s\-]?[0-9A-Z]{3,4}")
_NON_ALPHANUMERIC = re.compile(r"[^A-Z0-9]")


@dataclass
class OcrTextExtractor:
    """
    Extracts a container number, or failing that a plate, from OCR text.

    Search order:
    1. A run of 4 letters followed by 7 digits in the cleaned text.
    2. For each known owner prefix (in list order) found in the cleaned
       text, the first run of 7 digits after it. First prefix that
       yields one wins.
    3. A plate-like token (3-4 letters, optional separator, 3-4
       alphanumerics) in the uppercased original text.

    The container candidate is returned as read; check-digit repair is
    left to ContainerNumberValidator.

    Example:
        >>> extractor = OcrTextExtractor()
        >>> extractor.extract("MAX GROSS 30480 KG MSCU 123456 7")
        OcrExtractionResult(container='MSCU1234567', plate='')
    """

    owner_prefixes: Sequence[str] = field(default_factory=lambda: DEFAULT_OWNER_PREFIXES)

    def extract(self, raw_text: str) -> OcrExtractionResult:
        """
        Extract the best candidate from one frame's OCR text.

        Args:
            raw_text: Text as returned by the OCR engine.

        Returns:
            OcrExtractionResult: Container or plate candidate; both empty on a miss.
        """
        if not raw_text:
            return OcrExtractionResult()

        upper = raw_text.upper()
        cleaned = _NON_ALPHANUMERIC.sub("", upper)

        container = self.find_container(cleaned)
        if container:
            return OcrExtractionResult(container=container)

        return OcrExtractionResult(plate=self.find_plate(upper))

    def find_container(self, cleaned: str) -> str:
        """
        Find a container number in cleaned (A-Z0-9 only) text.

        Returns:
            str: 11-character candidate, or "" if none found.
        """
        match = _CONTAINER_PATTERN.search(cleaned)
        if match:
            return match.group(0)

        for prefix in self.owner_prefixes:
            start = cleaned.find(prefix)
            if start == -1:
                continue
            serial = _SERIAL_PATTERN.search(cleaned, start + len(prefix))
            if serial:
                return prefix + serial.group(0)

        return ""

    def find_plate(self, upper_text: str) -> str:
        """
        Find a plate-like token in uppercased, unstripped text.

        Returns:
            str: Plate with separators removed, or "" if none found.
        """
        match = _PLATE_PATTERN.search(upper_text)
        if match is None:
            return ""
        return _NON_ALPHANUMERIC.sub("", match.group(0))

    def extract_first(self, texts: Iterable[str]) -> OcrExtractionResult:
        """
        Extract across several OCR attempts of the same frame.

        The first text that yields a container wins. Otherwise the plate
        is taken from the last text, which is expected to be the
        full-frame attempt.
        """
        last = ""
        for text in texts:
            last = text
            container = self.find_container(_NON_ALPHANUMERIC.sub("", (text or "").upper()))
            if container:
                return OcrExtractionResult(container=container)

        return OcrExtractionResult(plate=self.find_plate((last or "").upper()))


_extractor = OcrTextExtractor()


def extract_from_ocr_text(raw_text: str) -> OcrExtractionResult:
    """Container or plate candidate from raw OCR text, using the default prefix list."""
    return _extractor.extract(raw_text)
