"""
Masking of sensitive values before they reach telemetry.

Keys with a word (split on camelCase and punctuation) in ``SENSITIVE_KEY_WORDS``
are replaced by ``<masked>`` (an ``Authorization`` value keeps its scheme, e.g.
``Bearer <masked>``), JWT-looking strings are masked wherever they appear and
long strings are truncated.
"""

import re
from typing import Any

MASK = "<masked>"
MAX_STRING_LENGTH = 200
TRUNCATION_SUFFIX = "... (truncated)"

SENSITIVE_KEY_WORDS = frozenset(
    {
        "password",
        "passwd",
        "passphrase",
        "token",
        "accesstoken",
        "refreshtoken",
        "secret",
        "clientsecret",
        "key",
        "apikey",
        "auth",
        "authorization",
        "credential",
        "cookie",
        "jwt",
    }
)

_KEY_WORD_BOUNDARY = re.compile(r"[^A-Za-z0-9]+|(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_JWT_PATTERN = re.compile(r"^(Bearer\s+)?eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*$")


def is_sensitive_key(key: str) -> bool:
    for word in _KEY_WORD_BOUNDARY.split(key):
        word = word.lower()
        if word in SENSITIVE_KEY_WORDS or word.removesuffix("s") in SENSITIVE_KEY_WORDS:
            return True
    return False


def _mask_secret(key: str, value: Any) -> str:
    if key.lower() == "authorization" and isinstance(value, str):
        scheme, sep, _ = value.partition(" ")
        if sep:
            return f"{scheme} {MASK}"
    return MASK


def mask_value(value: Any) -> Any:
    """Mask a single value that is not under a sensitive key."""
    if isinstance(value, str):
        if _JWT_PATTERN.match(value.strip()):
            return MASK
        if len(value) > MAX_STRING_LENGTH:
            return value[:MAX_STRING_LENGTH] + TRUNCATION_SUFFIX
        return value
    if isinstance(value, dict):
        return mask_payload(value)
    if isinstance(value, list | tuple):
        return [mask_value(item) for item in value]
    return value


def mask_payload(payload: dict[str, Any] | None) -> dict[str, Any] | None:
    """Return a masked copy of ``payload``; the input is left untouched."""
    if payload is None:
        return None
    masked: dict[str, Any] = {}
    for key, value in payload.items():
        if is_sensitive_key(str(key)) and value not in (None, ""):
            masked[key] = _mask_secret(str(key), value)
        else:
            masked[key] = mask_value(value)
    return masked
