"""ML infrastructure package."""

from yardgate.infrastructure.ml.ocr import (
    EasyOCREngine,
    ImagePreprocessor,
    MockOCREngine,
    OCREngine,
    OCRError,
    PaddleOCREngine,
    get_ocr_engine,
)

__all__ = [
    "OCREngine",
    "EasyOCREngine",
    "PaddleOCREngine",
    "MockOCREngine",
    "ImagePreprocessor",
    "OCRError",
    "get_ocr_engine",
]
