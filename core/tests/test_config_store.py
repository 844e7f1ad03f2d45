"""Tests for backend config stores and resolution order."""

import json

import pytest

from flowengine.schemas.backend_config import BackendConfig
from flowengine.storage.config_store import (
    BackendConfigNotFound,
    FileBackendConfigStore,
    InMemoryBackendConfigStore,
    resolve_backend_config,
)


def _config(config_id: str, base_url: str = "https://x.test") -> BackendConfig:
    return BackendConfig.model_validate({"id": config_id, "baseUrl": base_url})


class TestResolveBackendConfig:
    def test_inline_wins(self):
        store = InMemoryBackendConfigStore([_config("crm")])
        resolved = resolve_backend_config(
            store, inline={"baseUrl": "https://inline.test"}, config_id="crm"
        )
        assert resolved.base_url == "https://inline.test"

    def test_by_id(self):
        store = InMemoryBackendConfigStore([_config("crm"), _config("erp", "https://erp.test")])
        assert resolve_backend_config(store, config_id="erp").base_url == "https://erp.test"

    def test_active_when_nothing_requested(self):
        store = InMemoryBackendConfigStore([_config("crm"), _config("erp")], active="erp")
        assert resolve_backend_config(store).id == "erp"

    def test_unknown_id(self):
        store = InMemoryBackendConfigStore([_config("crm")])
        with pytest.raises(BackendConfigNotFound) as exc_info:
            resolve_backend_config(store, config_id="billing")
        assert str(exc_info.value) == "Backend config not found: billing"

    def test_no_store(self):
        assert resolve_backend_config(None) is None
        with pytest.raises(BackendConfigNotFound):
            resolve_backend_config(None, config_id="crm")


class TestInMemoryStore:
    def test_first_saved_becomes_active(self):
        store = InMemoryBackendConfigStore()
        assert store.get_active() is None
        store.save(_config("crm"))
        store.save(_config("erp"))
        assert store.get_active().id == "crm"
        assert [c.id for c in store.list()] == ["crm", "erp"]

    def test_set_active(self):
        store = InMemoryBackendConfigStore([_config("crm"), _config("erp")])
        store.set_active("erp")
        assert store.get_active().id == "erp"
        with pytest.raises(BackendConfigNotFound):
            store.set_active("missing")

    def test_config_without_id_cannot_be_saved(self):
        with pytest.raises(ValueError):
            InMemoryBackendConfigStore().save(BackendConfig())


class TestFileStore:
    def test_loads_configs_and_active(self, tmp_path):
        path = tmp_path / "configs.json"
        path.write_text(
            json.dumps(
                {
                    "active": "erp",
                    "configs": [
                        {"id": "crm", "baseUrl": "https://crm.test"},
                        {"id": "erp", "baseUrl": "https://erp.test", "authType": "bearer"},
                    ],
                }
            )
        )

        store = FileBackendConfigStore(path)

        assert store.get_active().base_url == "https://erp.test"
        assert store.get("crm").auth_type == "none"

    def test_accepts_bare_list(self, tmp_path):
        path = tmp_path / "configs.json"
        path.write_text(json.dumps([{"id": "crm", "baseUrl": "https://crm.test"}]))
        assert FileBackendConfigStore(path).get_active().id == "crm"

    def test_missing_file_is_empty(self, tmp_path):
        store = FileBackendConfigStore(tmp_path / "nope.json")
        assert store.list() == []
        assert store.get_active() is None
