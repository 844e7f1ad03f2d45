"""Shared fixtures for flow engine tests."""

from collections.abc import Callable

import httpx
import pytest

from flowengine.capabilities import Capabilities
from flowengine.config import EngineSettings
from flowengine.graph.executor import FlowExecutor
from flowengine.http.auth import OAuth2TokenCache
from flowengine.observability import clear_trace_context
from flowengine.runtime.event_bus import EventBus


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from ~/.flowengine and from the caller's environment."""
    monkeypatch.setenv("FLOWENGINE_CONFIG_FILE", str(tmp_path / "configuration.json"))
    for name in (
        "ENV",
        "LOG_FORMAT",
        "FLOWENGINE_DEFAULT_BASE_URL",
        "FLOWENGINE_LLM_MODEL",
        "FLOWENGINE_RETRY_BACKOFF",
        "FLOWENGINE_BACKEND_CONFIGS",
        "FLOWENGINE_EVENT_LOG",
        "FLOWENGINE_TELEMETRY_QUEUE_SIZE",
        "FLOWENGINE_HOST",
        "FLOWENGINE_PORT",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    clear_trace_context()


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(
        default_base_url="http://default.test",
        environment="development",
        llm_model="mock-model",
        llm_api_key=None,
        retry_backoff_seconds=0,
    )


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus(retry_delay=0)


@pytest.fixture
def token_cache() -> OAuth2TokenCache:
    return OAuth2TokenCache()


@pytest.fixture
def make_executor(settings, event_bus, token_cache) -> Callable[..., FlowExecutor]:
    """
    Build a FlowExecutor whose HTTP traffic goes to ``handler``.

    ``handler`` receives an ``httpx.Request`` and returns an ``httpx.Response``.
    """

    def factory(
        handler: Callable[[httpx.Request], httpx.Response] | None = None,
        capabilities: Capabilities | None = None,
        settings_override: EngineSettings | None = None,
    ) -> FlowExecutor:
        transport = httpx.MockTransport(handler) if handler is not None else None
        return FlowExecutor(
            capabilities=capabilities,
            event_bus=event_bus,
            settings=settings_override or settings,
            http_transport=transport,
            token_cache=token_cache,
        )

    return factory


@pytest.fixture
def start_node() -> Callable[..., dict]:
    """A condition node flagged as the entry point for ``task_type``."""

    def factory(task_type: str = "invoice_email", node_id: str = "start", **data) -> dict:
        return {
            "id": node_id,
            "type": "condition",
            "data": {"isStartingPoint": True, "returnText": task_type, **data},
        }

    return factory


def execution_link(source: str, target: str, handle: str | None = None) -> dict:
    edge = {"id": f"{source}->{target}", "source": source, "target": target}
    edge["isExecutionLink"] = True
    if handle:
        edge["sourceHandle"] = handle
    return edge


def data_edge(source: str, source_handle: str, target: str, target_handle: str) -> dict:
    return {
        "id": f"{source}.{source_handle}->{target}.{target_handle}",
        "source": source,
        "sourceHandle": source_handle,
        "target": target,
        "targetHandle": target_handle,
    }


@pytest.fixture
def link() -> Callable[..., dict]:
    return execution_link


@pytest.fixture
def wire() -> Callable[..., dict]:
    return data_edge
