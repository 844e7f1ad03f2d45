"""
Credential management for capability clients.

Credentials are read from the environment, falling back to a .env file.

Usage:
    from flowengine_tools.credentials import CredentialManager

    creds = CredentialManager()
    creds.validate_for_node_types(["sendMail"])
    api_key = creds.get("unipile")
"""

from .base import CredentialError, CredentialManager, CredentialSpec
from .email import EMAIL_CREDENTIALS
from .llm import LLM_CREDENTIALS
from .vision import VISION_CREDENTIALS

CREDENTIAL_SPECS = {
    **EMAIL_CREDENTIALS,
    **VISION_CREDENTIALS,
    **LLM_CREDENTIALS,
}

__all__ = [
    "CredentialSpec",
    "CredentialManager",
    "CredentialError",
    "CREDENTIAL_SPECS",
    "EMAIL_CREDENTIALS",
    "VISION_CREDENTIALS",
    "LLM_CREDENTIALS",
]
