"""Tests for the flow HTTP server."""

from contextlib import asynccontextmanager

import aiohttp
import httpx
import pytest

from flowengine.runtime.server import FlowServer, FlowServerConfig
from flowengine.schemas.backend_config import BackendConfig
from flowengine.storage.config_store import InMemoryBackendConfigStore


def _backend(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"host": request.url.host, "path": request.url.path})


@pytest.fixture
def server(make_executor):
    store = InMemoryBackendConfigStore(
        [BackendConfig.model_validate({"id": "crm", "baseUrl": "https://crm.test"})]
    )
    return FlowServer(
        make_executor(_backend), store=store, config=FlowServerConfig(host="127.0.0.1", port=0)
    )


@asynccontextmanager
async def serving(server: FlowServer):
    await server.start()
    try:
        yield server
    finally:
        await server.stop()


def _url(server: FlowServer, path: str) -> str:
    return f"http://127.0.0.1:{server.port}{path}"


def _payload(start_node, link, **extra) -> dict:
    return {
        "nodes": [
            start_node(),
            {"id": "api", "type": "apiCall", "data": {"method": "GET", "path": "/ping"}},
        ],
        "edges": [link("start", "api")],
        "task": {"type": "invoice_email"},
        **extra,
    }


@pytest.mark.asyncio
async def test_health(server):
    async with serving(server), aiohttp.ClientSession() as session:
        async with session.get(_url(server, "/api/health")) as resp:
            assert resp.status == 200
            assert await resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_execute_uses_active_backend_config(server, start_node, link):
    async with serving(server), aiohttp.ClientSession() as session:
        async with session.post(
            _url(server, "/api/flow/execute"), json=_payload(start_node, link)
        ) as resp:
            assert resp.status == 200
            body = await resp.json()

    assert body == {"success": True, "result": [{"host": "crm.test", "path": "/ping"}]}


@pytest.mark.asyncio
async def test_execute_prefers_inline_backend_config(server, start_node, link):
    payload = _payload(start_node, link, backendConfig={"baseUrl": "https://inline.test"})
    async with serving(server), aiohttp.ClientSession() as session:
        async with session.post(_url(server, "/api/flow/execute"), json=payload) as resp:
            body = await resp.json()

    assert body["result"] == [{"host": "inline.test", "path": "/ping"}]


@pytest.mark.asyncio
async def test_run_failure_is_reported_with_200(server, start_node):
    payload = {"nodes": [start_node()], "edges": [], "task": {"type": "refund_request"}}
    async with serving(server), aiohttp.ClientSession() as session:
        async with session.post(_url(server, "/api/flow/execute"), json=payload) as resp:
            assert resp.status == 200
            body = await resp.json()

    assert body["success"] is False
    assert "No starting node" in body["error"]


@pytest.mark.asyncio
async def test_missing_fields(server):
    async with serving(server), aiohttp.ClientSession() as session:
        async with session.post(_url(server, "/api/flow/execute"), json={"nodes": []}) as resp:
            assert resp.status == 400
            body = await resp.json()

    assert body == {"success": False, "error": "Missing required fields: edges, task"}


@pytest.mark.asyncio
async def test_invalid_json(server):
    async with serving(server), aiohttp.ClientSession() as session:
        async with session.post(_url(server, "/api/flow/execute"), data=b"{not json") as resp:
            assert resp.status == 400
            body = await resp.json()

    assert body["error"] == "Request body must be valid JSON"


@pytest.mark.asyncio
async def test_non_object_body(server):
    async with serving(server), aiohttp.ClientSession() as session:
        async with session.post(_url(server, "/api/flow/execute"), json=[1, 2]) as resp:
            assert resp.status == 400


@pytest.mark.asyncio
async def test_unknown_backend_config_id(server, start_node, link):
    payload = _payload(start_node, link, backendConfigId="billing")
    async with serving(server), aiohttp.ClientSession() as session:
        async with session.post(_url(server, "/api/flow/execute"), json=payload) as resp:
            assert resp.status == 404
            body = await resp.json()

    assert body == {"success": False, "error": "Backend config not found: billing"}


@pytest.mark.asyncio
async def test_invalid_inline_backend_config(server, start_node, link):
    payload = _payload(start_node, link, backendConfig={"timeout": "soon"})
    async with serving(server), aiohttp.ClientSession() as session:
        async with session.post(_url(server, "/api/flow/execute"), json=payload) as resp:
            assert resp.status == 400
            body = await resp.json()

    assert body["error"].startswith("Invalid backend config")


@pytest.mark.asyncio
async def test_lifecycle(make_executor):
    server = FlowServer(make_executor(), config=FlowServerConfig(port=0))
    assert server.is_running is False
    assert server.port is None

    await server.start()
    assert server.is_running is True
    assert server.port

    await server.stop()
    assert server.is_running is False
