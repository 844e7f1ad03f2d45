"""OCR providers."""

from .vision import VisionError, VisionOCRProvider

__all__ = ["VisionError", "VisionOCRProvider"]
