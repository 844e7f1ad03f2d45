"""
Backend config stores.

A store resolves the backend config a run should use: an inline config
wins, then one looked up by id, then the store's active config.

File layout for ``FileBackendConfigStore``:

    {
      "active": "crm",
      "configs": [
        {"id": "crm", "baseUrl": "https://crm.example.com", "authType": "bearer", ...}
      ]
    }
"""

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from flowengine.errors import FlowError
from flowengine.schemas.backend_config import BackendConfig

logger = logging.getLogger(__name__)


class BackendConfigNotFound(FlowError):
    """No backend config exists under the requested id."""

    def __init__(self, config_id: str):
        self.config_id = config_id
        super().__init__(f"Backend config not found: {config_id}")


class BackendConfigStore(Protocol):
    def get(self, config_id: str) -> BackendConfig | None: ...

    def get_active(self) -> BackendConfig | None: ...


def resolve_backend_config(
    store: BackendConfigStore | None,
    inline: BackendConfig | dict[str, Any] | None = None,
    config_id: str | None = None,
) -> BackendConfig | None:
    """
    Pick the backend config for a run: inline, then by id, then active.

    Raises:
        BackendConfigNotFound: ``config_id`` was given but is unknown
    """
    if inline is not None:
        return inline if isinstance(inline, BackendConfig) else BackendConfig.model_validate(inline)
    if store is None:
        if config_id:
            raise BackendConfigNotFound(config_id)
        return None
    if config_id:
        config = store.get(config_id)
        if config is None:
            raise BackendConfigNotFound(config_id)
        return config
    return store.get_active()


class InMemoryBackendConfigStore:
    """Backend configs held in a dict; the first one saved becomes active."""

    def __init__(self, configs: list[BackendConfig] | None = None, active: str | None = None):
        self._configs: dict[str, BackendConfig] = {}
        self._active = active
        for config in configs or []:
            self.save(config)

    def save(self, config: BackendConfig) -> None:
        if not config.id:
            raise ValueError("Backend config needs an id to be stored")
        self._configs[config.id] = config
        if self._active is None:
            self._active = config.id

    def set_active(self, config_id: str) -> None:
        if config_id not in self._configs:
            raise BackendConfigNotFound(config_id)
        self._active = config_id

    def get(self, config_id: str) -> BackendConfig | None:
        return self._configs.get(config_id)

    def get_active(self) -> BackendConfig | None:
        if self._active is None:
            return None
        return self._configs.get(self._active)

    def list(self) -> list[BackendConfig]:
        return list(self._configs.values())


class FileBackendConfigStore(InMemoryBackendConfigStore):
    """Backend configs loaded from a JSON file (read once, on construction)."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        data = self._load()
        configs = [BackendConfig.model_validate(c) for c in data.get("configs", [])]
        super().__init__(configs, active=data.get("active"))
        logger.info(f"Loaded {len(configs)} backend config(s) from {self.path}")

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            logger.warning(f"⚠ Backend config file {self.path} does not exist")
            return {}
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, list):
            return {"configs": data}
        return data
