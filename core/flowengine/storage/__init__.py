"""Storage for backend configs."""

from flowengine.storage.config_store import (
    BackendConfigNotFound,
    BackendConfigStore,
    FileBackendConfigStore,
    InMemoryBackendConfigStore,
    resolve_backend_config,
)

__all__ = [
    "BackendConfigNotFound",
    "BackendConfigStore",
    "FileBackendConfigStore",
    "InMemoryBackendConfigStore",
    "resolve_backend_config",
]
