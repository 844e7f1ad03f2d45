"""
API-call node executor.

Builds an HTTP request from the node's declared method, path, parameters and
body schema, resolving every input from the context or from the edge wired
into it, applies the backend config's headers and authentication, and sends
it. Unlike the other executors this one raises on failure so the run fails
with a precise diagnostic.
"""

import json
import logging
import time
from typing import Any
from urllib.parse import quote

from flowengine.errors import FlowError, NodeValidationError, RemoteAPIError
from flowengine.graph.coercion import coerce_value
from flowengine.graph.context import ExecutionContext
from flowengine.graph.node import NodeSpec
from flowengine.graph.nodes.base import NodeExecutor, NodeServices
from flowengine.graph.ports import default_body, resolve_input

logger = logging.getLogger(__name__)

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


def body_schema(node: NodeSpec) -> dict[str, Any]:
    """
    The JSON schema declared for the request body.

    Looked up in ``bodySchema``, ``requestBody.schema`` and then the OpenAPI
    form ``requestBody.content.<media type>.schema``.
    """
    data = node.data
    if isinstance(data.get("bodySchema"), dict):
        return data["bodySchema"]
    request_body = data.get("requestBody")
    if not isinstance(request_body, dict):
        return {}
    if isinstance(request_body.get("schema"), dict):
        return request_body["schema"]
    content = request_body.get("content")
    if isinstance(content, dict):
        for media in content.values():
            if isinstance(media, dict) and isinstance(media.get("schema"), dict):
                return media["schema"]
    return {}


def join_url(base: str, path: str) -> str:
    if path.startswith(("http://", "https://")):
        return path
    if not base:
        return path
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


class APICallExecutor(NodeExecutor):
    async def execute(self, node: NodeSpec, ctx: ExecutionContext, services: NodeServices) -> Any:
        data = node.data
        method = str(data.get("method") or "GET").upper()
        path = data.get("path")
        if not path:
            raise NodeValidationError("path")

        config = ctx.backend_config
        path, params, extra_headers = self._apply_parameters(node, ctx, str(path))
        base = config.base_url if config and config.base_url else services.settings.default_base_url
        url = join_url(base, path)

        body = self._build_body(node, ctx) if method in BODY_METHODS else None

        headers = {"Content-Type": "application/json"}
        if config is not None:
            headers.update(config.header_dict())
        headers.update(extra_headers)
        await services.auth.apply(config, headers, params)

        logger.info(f"▶ API node {node.id}: {method} {url}")
        await services.event_bus.emit_api_request(
            run_id=ctx.run_id,
            node_id=node.id,
            method=method,
            url=url,
            headers=headers,
            params=params,
            body=body,
        )

        start = time.perf_counter()
        try:
            response = await services.api_client.request(
                method, url, config=config, headers=headers, params=params, body=body
            )
        except FlowError as e:
            await services.event_bus.emit_api_error(
                run_id=ctx.run_id,
                node_id=node.id,
                error=str(e),
                status=e.status if isinstance(e, RemoteAPIError) else None,
                latency_ms=int((time.perf_counter() - start) * 1000),
            )
            raise

        await services.event_bus.emit_api_response(
            run_id=ctx.run_id,
            node_id=node.id,
            status=response.status,
            latency_ms=response.latency_ms,
            body=response.body,
        )

        ctx.set(f"{node.id}-output-status", response.status)
        ctx.set(f"{node.id}-output-headers", response.headers)
        ctx.set(f"{node.id}-output-response", response.body)
        ctx.set(f"{node.id}-output-body", response.body)
        return response.body

    def _apply_parameters(
        self, node: NodeSpec, ctx: ExecutionContext, path: str
    ) -> tuple[str, dict[str, Any], dict[str, str]]:
        params: dict[str, Any] = {}
        headers: dict[str, str] = {}
        for param in node.data.get("parameters") or []:
            if not isinstance(param, dict) or not param.get("name"):
                continue
            name = param["name"]
            location = param.get("in", "query")
            value = resolve_input(node, f"param-{name}", ctx)

            if location == "path":
                if value is None:
                    logger.warning(f"⚠ No value found for path parameter: {name}")
                    continue
                path = path.replace(f"{{{name}}}", quote(str(value), safe=""))
            elif value is None:
                continue
            elif location == "query":
                params[name] = value
            elif location == "header":
                headers[name] = str(value)
        return path, params, headers

    def _build_body(self, node: NodeSpec, ctx: ExecutionContext) -> Any:
        body = resolve_input(node, "param-body", ctx)
        if isinstance(body, str):
            try:
                body = json.loads(body)
            except json.JSONDecodeError:
                logger.warning(f"⚠ Body for {node.id} is not valid JSON, sending as text")

        if body is None:
            properties = body_schema(node).get("properties") or {}
            fields: dict[str, Any] = {}
            for field_name, field_schema in properties.items():
                value = resolve_input(node, f"body-{field_name}", ctx)
                if value is None:
                    continue
                declared = field_schema.get("type") if isinstance(field_schema, dict) else None
                fields[field_name] = coerce_value(value, declared)
            body = fields

        defaults = default_body(node)
        if isinstance(body, dict) and defaults:
            body = {**defaults, **body}

        if body in ({}, None):
            logger.warning(f"⚠ No request body found for {node.id}")
            return None
        return body
