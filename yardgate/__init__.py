"""Container yard gate service: ISO 6346 validation, OCR-assisted gate intake."""

__version__ = "1.0.0"
