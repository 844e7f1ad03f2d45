"""
Flow engine tools - Capability clients for the flow engine.

Clients give flow nodes access to external systems: the Unipile email API
for sendMail and emailAttachment nodes, Google Cloud Vision for OCR nodes.

Usage:
    from flowengine import FlowExecutor
    from flowengine_tools import build_capabilities

    executor = FlowExecutor(capabilities=build_capabilities())
"""

__version__ = "0.1.0"

from .credentials import (
    CREDENTIAL_SPECS,
    CredentialError,
    CredentialManager,
    CredentialSpec,
)
from .email_transport import UnipileEmailTransport, UnipileError
from .ocr import VisionError, VisionOCRProvider
from .registry import build_capabilities

__all__ = [
    "__version__",
    # Credentials
    "CredentialManager",
    "CredentialSpec",
    "CredentialError",
    "CREDENTIAL_SPECS",
    # Clients
    "UnipileEmailTransport",
    "UnipileError",
    "VisionOCRProvider",
    "VisionError",
    "build_capabilities",
]
