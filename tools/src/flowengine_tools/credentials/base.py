"""
Base classes for credential management.

Contains the core infrastructure: CredentialSpec, CredentialManager, and CredentialError.
Credential specs are defined in separate category files (email.py, vision.py, llm.py).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import dotenv_values


@dataclass
class CredentialSpec:
    """Specification for a single credential."""

    env_var: str
    """Environment variable name (e.g., 'UNIPILE_EMAIL_API_KEY')"""

    node_types: list[str] = field(default_factory=list)
    """Node types that require this credential (e.g., ['sendMail', 'emailAttachment'])"""

    required: bool = True
    """Whether this credential is required (vs optional)"""

    help_url: str = ""
    """URL where user can obtain this credential"""

    description: str = ""
    """Human-readable description of what this credential is for"""

    api_key_instructions: str = ""
    """Step-by-step instructions for getting the API key"""

    credential_group: str = ""
    """Group name for credentials that must be configured together (e.g., 'unipile')"""


class CredentialError(Exception):
    """Raised when required credentials are missing."""

    pass


class CredentialManager:
    """
    Centralized credential management with graph-aware validation.

    Key features:
    - validate_for_node_types(): Validates only credentials needed by the given node types
    - get(): Retrieves credential value by logical name
    - for_testing(): Factory for creating test instances with mock values

    Usage:
        # Production
        creds = CredentialManager()
        creds.validate_for_node_types(["ocr"])  # Fails if GOOGLE_CLOUD_VISION_API_KEY missing
        api_key = creds.get("google_vision")

        # Testing
        creds = CredentialManager.for_testing({"google_vision": "test-key"})
        api_key = creds.get("google_vision")  # Returns "test-key"
    """

    def __init__(
        self,
        specs: dict[str, CredentialSpec] | None = None,
        _overrides: dict[str, str] | None = None,
        dotenv_path: Path | None = None,
    ):
        """
        Initialize the credential manager.

        Args:
            specs: Credential specifications (defaults to CREDENTIAL_SPECS)
            _overrides: Internal - used by for_testing() to inject test values
            dotenv_path: Optional path to .env file (defaults to cwd/.env)
        """
        if specs is None:
            # Lazy import to avoid circular dependency
            from . import CREDENTIAL_SPECS

            specs = CREDENTIAL_SPECS
        self._specs = specs
        self._overrides = _overrides or {}
        self._dotenv_path = dotenv_path
        # Build reverse mapping: node_type -> credential names
        self._node_type_to_creds: dict[str, list[str]] = {}
        for cred_name, spec in self._specs.items():
            for node_type in spec.node_types:
                self._node_type_to_creds.setdefault(node_type, []).append(cred_name)

    @classmethod
    def for_testing(
        cls,
        overrides: dict[str, str],
        specs: dict[str, CredentialSpec] | None = None,
        dotenv_path: Path | None = None,
    ) -> CredentialManager:
        """
        Create a CredentialManager with test values.

        Args:
            overrides: Dict mapping credential names to test values
            specs: Optional custom specs (defaults to CREDENTIAL_SPECS)
            dotenv_path: Optional path to .env file
                (use non-existent path to isolate from real .env)

        Example:
            creds = CredentialManager.for_testing({"google_vision": "test-key"})
            assert creds.get("google_vision") == "test-key"
        """
        return cls(specs=specs, _overrides=overrides, dotenv_path=dotenv_path)

    def _get_raw(self, name: str) -> str | None:
        """Get credential from overrides, os.environ, or .env file.

        Priority order:
        1. Test overrides (for testing)
        2. os.environ (explicit environment variables take precedence)
        3. .env file (hot-reload support - reads fresh each time)
        """
        if name in self._overrides:
            return self._overrides[name]

        spec = self._specs.get(name)
        if spec is None:
            return None

        env_value = os.environ.get(spec.env_var)
        if env_value:
            return env_value

        return self._read_from_dotenv(spec.env_var)

    def _read_from_dotenv(self, env_var: str) -> str | None:
        """Read a single env var from .env file without modifying os.environ."""
        dotenv_path = self._dotenv_path or Path.cwd() / ".env"
        if not dotenv_path.exists():
            return None

        values = dotenv_values(dotenv_path)
        return values.get(env_var)

    def get(self, name: str) -> str | None:
        """
        Get a credential value by logical name.

        Reads fresh from environment/.env each time, so credentials added to
        .env take effect without restarting the server.

        Raises:
            KeyError: If the credential name is not in specs
        """
        if name not in self._specs:
            raise KeyError(f"Unknown credential '{name}'. Available: {list(self._specs.keys())}")

        return self._get_raw(name)

    def is_available(self, name: str) -> bool:
        """Check if a credential is available (set and non-empty)."""
        value = self.get(name)
        return value is not None and value != ""

    def group_available(self, group: str) -> bool:
        """Check that every required credential in ``group`` is available."""
        members = [
            name
            for name, spec in self._specs.items()
            if spec.credential_group == group and spec.required
        ]
        return bool(members) and all(self.is_available(name) for name in members)

    def get_missing_for_node_types(self, node_types: list[str]) -> list[tuple[str, CredentialSpec]]:
        """
        Required credentials that the given node types need but are not set.

        Each credential is reported once, in spec order of first use.
        """
        missing: list[tuple[str, CredentialSpec]] = []
        seen: set[str] = set()
        for node_type in node_types:
            for name in self._node_type_to_creds.get(node_type, []):
                if name in seen:
                    continue
                seen.add(name)
                spec = self._specs[name]
                if spec.required and not self.is_available(name):
                    missing.append((name, spec))
        return missing

    def validate_for_node_types(self, node_types: list[str]) -> None:
        """
        Check that a flow using ``node_types`` has every credential it needs.

        Raises:
            CredentialError: listing each missing variable with setup help
        """
        missing = self.get_missing_for_node_types(node_types)
        if missing:
            raise CredentialError(self._describe_missing(missing, node_types))

    @staticmethod
    def _describe_missing(
        missing: list[tuple[str, CredentialSpec]],
        node_types: list[str],
    ) -> str:
        lines = ["Cannot run flow: Missing credentials", ""]
        for _name, spec in missing:
            users = ", ".join(t for t in node_types if t in spec.node_types)
            lines.append(f"  {users} nodes require {spec.env_var}")
            if spec.description:
                lines.append(f"    {spec.description}")
            if spec.api_key_instructions:
                lines.extend(f"    {line}" for line in spec.api_key_instructions.splitlines())
            elif spec.help_url:
                lines.append(f"    See {spec.help_url}")
        lines.append("")
        lines.append("Set these variables in the environment or in .env.")
        return "\n".join(lines)
