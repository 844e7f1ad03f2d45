"""
Remote capabilities node executors depend on.

The engine only knows these contracts; concrete clients (Unipile email,
Google Cloud Vision OCR) live in ``flowengine_tools`` and LLM access in
``flowengine.llm``. A capability left as None makes the nodes that need it
fail with a structured error instead of crashing the run.
"""

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from flowengine.llm.provider import LLMProvider


@runtime_checkable
class EmailTransport(Protocol):
    """Sends emails and fetches attachment bytes."""

    async def send_email(self, message: dict[str, Any]) -> dict[str, Any]: ...

    async def fetch_attachment(
        self,
        email_id: str,
        attachment_id: str,
        account_id: str | None = None,
    ) -> tuple[bytes, str]: ...


@runtime_checkable
class OCRProvider(Protocol):
    """Recognizes text in an image given as a base64 data URI."""

    async def recognize(self, image_data_uri: str, language: str = "auto") -> dict[str, Any]:
        """Return ``{"text": str, "confidence": float (0-100)}``."""
        ...


@dataclass
class Capabilities:
    """The set of remote capabilities available to a flow executor."""

    email: EmailTransport | None = None
    ocr: OCRProvider | None = None
    llm: LLMProvider | None = None
    # Unipile account used when a node does not name one
    default_account_id: str | None = None
