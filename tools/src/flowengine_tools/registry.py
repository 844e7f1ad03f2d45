"""Wire capability clients from whatever credentials are configured."""

from __future__ import annotations

import logging

import httpx

from flowengine.capabilities import Capabilities
from flowengine.config import EngineSettings
from flowengine.llm import LiteLLMProvider

from .credentials import CredentialManager
from .email_transport import UnipileEmailTransport
from .ocr import VisionOCRProvider

logger = logging.getLogger(__name__)


def build_capabilities(
    settings: EngineSettings | None = None,
    credentials: CredentialManager | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Capabilities:
    """
    Build the capabilities a flow executor hands to its nodes.

    Email and OCR clients are only created when their credentials are set;
    nodes that need a missing capability fail with a structured error. The
    LLM provider is always created since LiteLLM resolves provider keys
    from the environment on its own.
    """
    settings = settings or EngineSettings()
    credentials = credentials or CredentialManager()

    email = None
    account_id = credentials.get("unipile_account_id")
    if credentials.group_available("unipile"):
        email = UnipileEmailTransport(
            base_url=credentials.get("unipile_base_url"),
            api_key=credentials.get("unipile"),
            account_id=account_id,
            transport=transport,
        )
    else:
        logger.warning("⚠ Unipile credentials not set; sendMail and emailAttachment disabled")

    ocr = None
    if credentials.is_available("google_vision"):
        ocr = VisionOCRProvider(credentials.get("google_vision"), transport=transport)
    else:
        logger.warning("⚠ GOOGLE_CLOUD_VISION_API_KEY not set; OCR nodes disabled")

    api_key = settings.llm_api_key
    if api_key is None and settings.llm_model.startswith("anthropic/"):
        api_key = credentials.get("anthropic")
    llm = LiteLLMProvider(model=settings.llm_model, api_key=api_key)

    return Capabilities(email=email, ocr=ocr, llm=llm, default_account_id=account_id)
