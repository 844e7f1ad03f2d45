"""
Google Cloud Vision OCR provider - Text recognition using the Vision API.

Images arrive as base64 data URIs; the base64 payload is sent inline so the
API never needs to fetch anything.

API Reference: https://cloud.google.com/vision/docs/ocr
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

VISION_API_URL = "https://vision.googleapis.com/v1/images:annotate"
DEFAULT_TIMEOUT = 30.0


class VisionError(Exception):
    """The Vision API rejected a request or returned an error."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


def split_data_uri(data_uri: str) -> tuple[str, str]:
    """
    Split ``data:<mime>;base64,<payload>`` into (mime type, base64 payload).

    Raises:
        ValueError: not a base64 data URI
    """
    if not data_uri.startswith("data:") or "," not in data_uri:
        raise ValueError("Image must be a base64 data URI")
    header, payload = data_uri[5:].split(",", 1)
    if not header.endswith(";base64"):
        raise ValueError("Image data URI must be base64 encoded")
    return header[: -len(";base64")] or "application/octet-stream", payload


class VisionOCRProvider:
    """
    OCR provider backed by Google Cloud Vision.

    ``DOCUMENT_TEXT_DETECTION`` is used for dense text (invoices, letters)
    and ``TEXT_DETECTION`` otherwise. Confidence is reported in percent.
    """

    def __init__(
        self,
        api_key: str,
        feature: str = "DOCUMENT_TEXT_DETECTION",
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self.feature = feature
        self._timeout = timeout
        self._transport = transport

    def _handle_response(self, response: httpx.Response) -> dict[str, Any]:
        """Return the first annotation result, raising VisionError on failure."""
        if response.status_code == 400:
            raise VisionError("Invalid request. Check image format and size.", status=400)
        if response.status_code == 401:
            raise VisionError("Invalid API key", status=401)
        if response.status_code == 403:
            raise VisionError(
                "API key not authorized. Enable Vision API in Google Cloud Console.",
                status=403,
            )
        if response.status_code == 429:
            raise VisionError("Rate limit exceeded. Try again later.", status=429)
        if response.status_code != 200:
            raise VisionError(
                f"Vision API error (HTTP {response.status_code})", status=response.status_code
            )

        responses = response.json().get("responses", [])
        if not responses:
            raise VisionError("Empty response from API")

        result = responses[0]
        if "error" in result:
            raise VisionError(result["error"].get("message", "Unknown API error"))
        return result

    async def recognize(self, image_data_uri: str, language: str = "auto") -> dict[str, Any]:
        """
        Recognize text in an image.

        Returns:
            ``{"text": str, "confidence": float}`` with confidence in 0-100
        """
        _, content = split_data_uri(image_data_uri)
        request: dict[str, Any] = {
            "image": {"content": content},
            "features": [{"type": self.feature}],
        }
        if language and language != "auto":
            request["imageContext"] = {"languageHints": [language]}

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(
                VISION_API_URL,
                params={"key": self._api_key},
                json={"requests": [request]},
            )
        result = self._handle_response(response)

        annotation = result.get("fullTextAnnotation") or {}
        text = annotation.get("text")
        if text is None:
            text_annotations = result.get("textAnnotations") or []
            text = text_annotations[0].get("description", "") if text_annotations else ""

        confidences = [
            page.get("confidence")
            for page in annotation.get("pages", [])
            if page.get("confidence") is not None
        ]
        confidence = sum(confidences) / len(confidences) * 100 if confidences else 0.0

        logger.debug(f"Vision recognized {len(text)} chars")
        return {"text": text, "confidence": round(confidence, 2)}
