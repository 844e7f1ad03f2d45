"""Email transports."""

from .unipile import UnipileEmailTransport, UnipileError

__all__ = ["UnipileEmailTransport", "UnipileError"]
