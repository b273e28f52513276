"""
OCR engine implementations using strategy pattern.

Provides pluggable OCR engines (EasyOCR, PaddleOCR) with image
preprocessing for container door markings and truck plates.
"""

import threading
from abc import ABC, abstractmethod

import cv2
import numpy as np

from yardgate.core.config import Settings, get_settings
from yardgate.core.logging import get_logger
from yardgate.domain.models import OCRResult

logger = get_logger(__name__)

# Container codes and plates only use these characters
CHARACTER_ALLOWLIST = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


class OCRError(Exception):
    """Raised when OCR extraction fails."""

    pass


class OCREngine(ABC):
    """
    Abstract base class for OCR engines.

    Implementations must provide the extract_text method.
    Use the strategy pattern to swap engines at runtime.
    """

    @abstractmethod
    def extract_text(self, image: np.ndarray) -> OCRResult:
        """
        Extract text from an image.

        Args:
            image: Image or region of interest (BGR format).

        Returns:
            OCRResult: Extracted text with confidence.

        Raises:
            OCRError: If extraction fails.
        """
        pass


class ImagePreprocessor:
    """
    Preprocesses images for optimal OCR performance.

    Applies resize, grayscale, denoising, and thresholding
    to improve recognition of stencilled container codes.
    """

    def __init__(
        self,
        target_height: int = 160,
        denoise_strength: int = 10,
    ):
        """
        Initialize preprocessor.

        Args:
            target_height: Height to resize images to.
            denoise_strength: Strength of denoising filter.
        """
        self.target_height = target_height
        self.denoise_strength = denoise_strength

    def preprocess(self, image: np.ndarray) -> np.ndarray:
        """
        Apply preprocessing pipeline.

        Args:
            image: Input image (BGR).

        Returns:
            np.ndarray: Preprocessed image optimized for OCR.
        """
        processed = self._resize(image)

        if len(processed.shape) == 3:
            processed = cv2.cvtColor(processed, cv2.COLOR_BGR2GRAY)

        processed = cv2.fastNlMeansDenoising(
            processed,
            h=self.denoise_strength,
        )

        processed = cv2.adaptiveThreshold(
            processed,
            255,
            cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
            cv2.THRESH_BINARY,
            11,
            2,
        )

        return processed

    def _resize(self, image: np.ndarray) -> np.ndarray:
        """Resize image to target height maintaining aspect ratio."""
        height, width = image.shape[:2]

        if height == 0 or height >= self.target_height:
            return image

        scale = self.target_height / height
        new_width = int(width * scale)

        return cv2.resize(
            image,
            (new_width, self.target_height),
            interpolation=cv2.INTER_CUBIC,
        )


class EasyOCREngine(OCREngine):
    """
    OCR engine using EasyOCR.

    Recognition is restricted to A-Z and 0-9, the only characters
    that appear in container numbers and plates.

    Example:
        engine = EasyOCREngine()
        result = engine.extract_text(frame)
    """

    _reader = None
    _lock = threading.Lock()

    def __init__(
        self,
        languages: list[str] | None = None,
        gpu: bool = False,
    ):
        """
        Initialize EasyOCR engine.

        Args:
            languages: Languages to recognize (default: English).
            gpu: Whether to use GPU acceleration.
        """
        self.languages = languages or ["en"]
        self.gpu = gpu
        self.preprocessor = ImagePreprocessor()

    def _get_reader(self):
        """Lazy-load the EasyOCR reader."""
        if EasyOCREngine._reader is None:
            with EasyOCREngine._lock:
                if EasyOCREngine._reader is None:
                    import easyocr

                    EasyOCREngine._reader = easyocr.Reader(
                        self.languages,
                        gpu=self.gpu,
                    )
                    logger.info("easyocr_initialized", gpu=self.gpu)
        return EasyOCREngine._reader

    def extract_text(self, image: np.ndarray) -> OCRResult:
        """
        Extract text using EasyOCR.

        Args:
            image: Image (BGR format).

        Returns:
            OCRResult: Extracted text with confidence.
        """
        try:
            reader = self._get_reader()

            logger.debug("ocr_input", image_shape=image.shape)

            results = reader.readtext(image, allowlist=CHARACTER_ALLOWLIST)

            # Low confidence on the raw frame: retry on the cleaned-up image
            if not results or max(r[2] for r in results) < 0.5:
                processed = self.preprocessor.preprocess(image)
                processed_results = reader.readtext(
                    processed,
                    allowlist=CHARACTER_ALLOWLIST,
                )

                if processed_results:
                    raw_max_conf = max((r[2] for r in results), default=0)
                    processed_max_conf = max((r[2] for r in processed_results), default=0)
                    if processed_max_conf > raw_max_conf:
                        results = processed_results

            if not results:
                logger.debug("no_text_detected")
                return OCRResult(raw_text="", confidence=0.0)

            texts = [text for _, text, _ in results]
            confidences = [conf for _, _, conf in results]

            combined_text = " ".join(texts)
            avg_confidence = sum(confidences) / len(confidences)

            logger.debug(
                "ocr_complete",
                text=combined_text,
                confidence=avg_confidence,
            )

            return OCRResult(
                raw_text=combined_text,
                confidence=min(max(avg_confidence, 0.0), 1.0),
            )

        except Exception as e:
            logger.error("ocr_failed", engine="easyocr", error=str(e))
            raise OCRError(f"OCR extraction failed: {e}") from e


class PaddleOCREngine(OCREngine):
    """
    OCR engine using PaddleOCR.

    Installed with the optional ``paddle`` extra.

    Example:
        engine = PaddleOCREngine()
        result = engine.extract_text(frame)
    """

    _ocr = None
    _lock = threading.Lock()

    def __init__(self, use_angle_cls: bool = True, lang: str = "en"):
        """
        Initialize PaddleOCR engine.

        Args:
            use_angle_cls: Enable angle classification for rotated text.
            lang: Language for OCR (default: English).
        """
        self.use_angle_cls = use_angle_cls
        self.lang = lang

    def _get_ocr(self):
        """Lazy-load the PaddleOCR instance."""
        if PaddleOCREngine._ocr is None:
            with PaddleOCREngine._lock:
                if PaddleOCREngine._ocr is None:
                    from paddleocr import PaddleOCR

                    PaddleOCREngine._ocr = PaddleOCR(
                        use_angle_cls=self.use_angle_cls,
                        lang=self.lang,
                    )
                    logger.info("paddleocr_initialized", lang=self.lang)
        return PaddleOCREngine._ocr

    def extract_text(self, image: np.ndarray) -> OCRResult:
        """
        Extract text using PaddleOCR.

        Args:
            image: Image (BGR format).

        Returns:
            OCRResult: Extracted text with confidence.
        """
        try:
            ocr = self._get_ocr()

            result = ocr.predict(image)

            texts = []
            confidences = []

            for res in result:
                if hasattr(res, "rec_texts") and res.rec_texts:
                    texts.extend(res.rec_texts)
                    if hasattr(res, "rec_scores") and res.rec_scores:
                        confidences.extend(res.rec_scores)
                elif hasattr(res, "get"):
                    if "rec_texts" in res:
                        texts.extend(res["rec_texts"])
                    if "rec_scores" in res:
                        confidences.extend(res["rec_scores"])

            if not texts:
                logger.debug("no_text_detected_paddle")
                return OCRResult(raw_text="", confidence=0.0)

            combined_text = " ".join(texts)
            avg_confidence = sum(confidences) / len(confidences) if confidences else 0.8

            logger.debug(
                "paddleocr_complete",
                text=combined_text,
                confidence=avg_confidence,
            )

            return OCRResult(
                raw_text=combined_text,
                confidence=min(max(float(avg_confidence), 0.0), 1.0),
            )

        except Exception as e:
            logger.error("ocr_failed", engine="paddleocr", error=str(e))
            raise OCRError(f"PaddleOCR extraction failed: {e}") from e


class MockOCREngine(OCREngine):
    """
    Mock OCR engine for testing and gate terminal demos.

    Returns configurable text regardless of the image.
    """

    def __init__(
        self,
        mock_text: str = "CSQU3054383",
        mock_confidence: float = 0.95,
    ):
        """
        Initialize mock OCR.

        Args:
            mock_text: Text to return from extraction.
            mock_confidence: Confidence to return.
        """
        self.mock_text = mock_text
        self.mock_confidence = mock_confidence

    def extract_text(self, image: np.ndarray) -> OCRResult:
        """Return mock OCR result."""
        return OCRResult(
            raw_text=self.mock_text,
            confidence=self.mock_confidence,
        )


def get_ocr_engine(settings: Settings | None = None) -> OCREngine:
    """
    Factory function to get the configured OCR engine.

    Args:
        settings: Application settings; defaults to the cached settings.

    Returns:
        OCREngine: Configured OCR engine instance.
    """
    settings = settings or get_settings()

    if settings.ocr_engine == "mock":
        logger.warning("mock_ocr_engine_selected")
        return MockOCREngine()

    if settings.ocr_engine == "paddleocr":
        return PaddleOCREngine(lang=settings.ocr_languages[0])

    return EasyOCREngine(languages=settings.ocr_languages, gpu=settings.ocr_gpu)
