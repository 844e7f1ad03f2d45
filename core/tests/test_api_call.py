"""Tests for API-call nodes: request building, auth, telemetry and failures."""

import json

import httpx
import pytest

from flowengine.runtime.event_bus import EventType
from flowengine.runtime.masking import MASK

BACKEND = {"baseUrl": "https://api.test"}


class RecordingHandler:
    """MockTransport handler that answers every request with one canned response."""

    def __init__(self, status: int = 200, body=None):
        self.status = status
        self.body = {"ok": True} if body is None else body
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    @property
    def last_json(self):
        return json.loads(self.last.content)


def _flow(start_node, link, api_data: dict, extra_nodes=(), extra_edges=()):
    return {
        "nodes": [
            start_node(emailAttributes={"email_id": ""}),
            {"id": "api", "type": "apiCall", "data": api_data},
            *extra_nodes,
        ],
        "edges": [link("start", "api"), *extra_edges],
    }


@pytest.mark.asyncio
async def test_path_query_and_header_parameters(make_executor, start_node, link, wire):
    handler = RecordingHandler(body={"tickets": []})
    graph = _flow(
        start_node,
        link,
        {
            "method": "GET",
            "path": "/users/{id}/tickets",
            "parameters": [
                {"name": "id", "in": "path"},
                {"name": "status", "in": "query"},
                {"name": "X-Trace", "in": "header"},
            ],
        },
        extra_nodes=[
            {"id": "status", "type": "text", "data": {"text": "open"}},
            {"id": "trace", "type": "int", "data": {"value": 7}},
        ],
        extra_edges=[
            wire("start", "attr-email_id", "api", "param-id"),
            wire("status", "output", "api", "param-status"),
            wire("trace", "attr-int", "api", "param-X-Trace"),
        ],
    )

    result = await make_executor(handler).execute_flow(
        graph, {"type": "invoice_email", "sourceId": "u1"}, backend_config=BACKEND
    )

    assert result.success, result.error
    assert result.result == [{"tickets": []}]
    request = handler.last
    assert request.method == "GET"
    assert request.url.host == "api.test"
    assert request.url.path == "/users/u1/tickets"
    assert request.url.params["status"] == "open"
    assert request.headers["X-Trace"] == "7"
    assert request.content == b""


@pytest.mark.asyncio
async def test_body_fields_are_coerced_and_merged_over_default_body(
    make_executor, start_node, link, wire
):
    handler = RecordingHandler(status=201, body={"id": "inv-1"})
    graph = _flow(
        start_node,
        link,
        {
            "method": "POST",
            "path": "/invoices",
            "bodySchema": {
                "properties": {
                    "amount": {"type": "number"},
                    "paid": {"type": "boolean"},
                    "note": {"type": "string"},
                }
            },
            "defaultBody": '{"currency": "EUR", "note": "imported"}',
        },
        extra_nodes=[
            {"id": "amount", "type": "text", "data": {"text": "12.5"}},
            {"id": "paid", "type": "text", "data": {"text": "yes"}},
        ],
        extra_edges=[
            wire("amount", "output", "api", "body-amount"),
            wire("paid", "output", "api", "body-paid"),
        ],
    )

    result = await make_executor(handler).execute_flow(
        graph, {"type": "invoice_email"}, backend_config=BACKEND
    )

    assert result.success, result.error
    assert handler.last.method == "POST"
    assert handler.last.headers["Content-Type"] == "application/json"
    expected = {"currency": "EUR", "note": "imported", "amount": 12.5, "paid": True}
    assert handler.last_json == expected
    assert result.context["api-output-status"] == 201


@pytest.mark.asyncio
async def test_body_param_json_string_is_sent_as_object(make_executor, start_node, link, wire):
    handler = RecordingHandler()
    graph = _flow(
        start_node,
        link,
        {"method": "PUT", "path": "/settings"},
        extra_nodes=[{"id": "payload", "type": "text", "data": {"text": '{"theme": "dark"}'}}],
        extra_edges=[wire("payload", "output", "api", "param-body")],
    )

    result = await make_executor(handler).execute_flow(
        graph, {"type": "invoice_email"}, backend_config=BACKEND
    )

    assert result.success, result.error
    assert handler.last_json == {"theme": "dark"}


@pytest.mark.asyncio
async def test_remote_error_fails_the_run_with_diagnostics(
    make_executor, start_node, link, event_bus
):
    handler = RecordingHandler(status=404, body={"message": "User not found"})
    graph = _flow(start_node, link, {"method": "GET", "path": "/users/42"})

    result = await make_executor(handler).execute_flow(
        graph, {"type": "invoice_email"}, backend_config=BACKEND
    )

    assert result.success is False
    assert "404" in result.error
    assert "User not found" in result.error
    assert result.path == ["start", "api"]

    errors = event_bus.get_history(event_type=EventType.API_ERROR)
    assert errors[0].payload["status"] == 404
    assert event_bus.get_history(event_type=EventType.RUN_FAILED)


@pytest.mark.asyncio
async def test_missing_path_fails_the_run(make_executor, start_node, link):
    handler = RecordingHandler()
    graph = _flow(start_node, link, {"method": "GET"})

    result = await make_executor(handler).execute_flow(
        graph, {"type": "invoice_email"}, backend_config=BACKEND
    )

    assert result.success is False
    assert result.error == "Missing required parameter: path"
    assert handler.requests == []


@pytest.mark.asyncio
async def test_default_base_url_used_without_backend_config(make_executor, start_node, link):
    handler = RecordingHandler()
    graph = _flow(start_node, link, {"method": "GET", "path": "/ping"})

    result = await make_executor(handler).execute_flow(graph, {"type": "invoice_email"})

    assert result.success, result.error
    assert str(handler.last.url) == "http://default.test/ping"


@pytest.mark.asyncio
async def test_auth_headers_applied_and_masked_in_telemetry(
    make_executor, start_node, link, event_bus
):
    handler = RecordingHandler()
    graph = _flow(start_node, link, {"method": "GET", "path": "/me"})
    backend = {
        **BACKEND,
        "authType": "bearer",
        "auth": {"token": "super-secret"},
        "defaultHeaders": [{"key": "X-Tenant", "value": "acme"}],
    }

    result = await make_executor(handler).execute_flow(
        graph, {"type": "invoice_email"}, backend_config=backend
    )

    assert result.success, result.error
    assert handler.last.headers["Authorization"] == "Bearer super-secret"
    assert handler.last.headers["X-Tenant"] == "acme"

    request_event = event_bus.get_history(event_type=EventType.API_REQUEST)[0]
    assert request_event.payload["headers"]["Authorization"] == f"Bearer {MASK}"
    assert request_event.payload["headers"]["X-Tenant"] == "acme"
    assert request_event.message == "GET https://api.test/me"


@pytest.mark.asyncio
async def test_response_ports_feed_downstream_nodes(make_executor, start_node, link, wire):
    handler = RecordingHandler(status=202, body={"queued": True})
    graph = _flow(
        start_node,
        link,
        {"method": "GET", "path": "/jobs"},
        extra_nodes=[{"id": "log", "type": "consoleLog", "data": {}}],
        extra_edges=[
            link("api", "log"),
            wire("api", "output-status", "log", "input-value"),
        ],
    )

    result = await make_executor(handler).execute_flow(
        graph, {"type": "invoice_email"}, backend_config=BACKEND
    )

    assert result.success, result.error
    assert result.result == [[{"logged": True, "value": 202}]]
    assert result.path == ["start", "api", "log"]
