"""Shared engine configuration utilities.

Centralises reading of ~/.flowengine/configuration.json so that the CLI,
the HTTP server and the executor share one implementation. Environment
variables override values from the file.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_BASE_URL = "http://localhost:5171"
DEFAULT_LLM_MODEL = "anthropic/claude-haiku-4-5-20251001"

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------


def get_config_file() -> Path:
    """Return the configuration file path (FLOWENGINE_CONFIG_FILE overrides the default)."""
    override = os.environ.get("FLOWENGINE_CONFIG_FILE")
    if override:
        return Path(override)
    return Path.home() / ".flowengine" / "configuration.json"


def get_engine_config() -> dict[str, Any]:
    """Load engine configuration from the configuration file."""
    config_file = get_config_file()
    if not config_file.exists():
        return {}
    try:
        with open(config_file, encoding="utf-8-sig") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def _setting(env_var: str, key: str, default: Any) -> Any:
    value = os.environ.get(env_var)
    if value not in (None, ""):
        return value
    return get_engine_config().get(key, default)


def get_default_base_url() -> str:
    """Base URL used for relative API paths when no backend config is supplied."""
    return str(_setting("FLOWENGINE_DEFAULT_BASE_URL", "default_base_url", DEFAULT_BASE_URL))


def get_environment() -> str:
    """Return the deployment environment (``production`` hides response bodies in errors)."""
    return str(_setting("ENV", "environment", "development")).lower()


def get_llm_model() -> str:
    """Return the default model used by AI nodes."""
    llm = get_engine_config().get("llm", {})
    env_model = os.environ.get("FLOWENGINE_LLM_MODEL")
    if env_model:
        return env_model
    if llm.get("provider") and llm.get("model"):
        return f"{llm['provider']}/{llm['model']}"
    return DEFAULT_LLM_MODEL


def get_llm_api_key() -> str | None:
    """Return the LLM API key from the environment variable named in configuration."""
    llm = get_engine_config().get("llm", {})
    api_key_env_var = llm.get("api_key_env_var")
    if api_key_env_var:
        return os.environ.get(api_key_env_var)
    return None


# ---------------------------------------------------------------------------
# EngineSettings – shared by executor, server and CLI
# ---------------------------------------------------------------------------


@dataclass
class EngineSettings:
    """Engine settings loaded from the configuration file and environment."""

    default_base_url: str = field(default_factory=get_default_base_url)
    environment: str = field(default_factory=get_environment)
    llm_model: str = field(default_factory=get_llm_model)
    llm_api_key: str | None = field(default_factory=get_llm_api_key)
    telemetry_queue_size: int = field(
        default_factory=lambda: int(
            _setting("FLOWENGINE_TELEMETRY_QUEUE_SIZE", "telemetry_queue_size", 1000)
        )
    )
    retry_backoff_seconds: float = field(
        default_factory=lambda: float(
            _setting("FLOWENGINE_RETRY_BACKOFF", "retry_backoff_seconds", 1.0)
        )
    )
    server_host: str = field(
        default_factory=lambda: str(_setting("FLOWENGINE_HOST", "server_host", "127.0.0.1"))
    )
    server_port: int = field(
        default_factory=lambda: int(_setting("FLOWENGINE_PORT", "server_port", 8080))
    )
    backend_configs_path: str | None = field(
        default_factory=lambda: _setting(
            "FLOWENGINE_BACKEND_CONFIGS", "backend_configs_path", None
        )
    )
    event_log_path: str | None = field(
        default_factory=lambda: _setting("FLOWENGINE_EVENT_LOG", "event_log_path", None)
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"
