"""
Flow HTTP Server - Exposes flow execution over HTTP.

Uses aiohttp for a lightweight embedded server that runs within the
existing asyncio loop. Each request is one independent run; the server
holds no per-run state.
"""

import json
import logging
from dataclasses import dataclass

from aiohttp import web

from flowengine.graph.executor import FlowExecutor
from flowengine.storage.config_store import (
    BackendConfigNotFound,
    BackendConfigStore,
    resolve_backend_config,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("nodes", "edges", "task")


@dataclass
class FlowServerConfig:
    """Configuration for the flow HTTP server."""

    host: str = "127.0.0.1"
    port: int = 8080


class FlowServer:
    """
    Embedded HTTP server for flow runs.

    Routes:
        POST /api/flow/execute  {nodes, edges, task, backendConfig?, backendConfigId?}
        GET  /api/health

    Lifecycle:
        server = FlowServer(executor, store)
        await server.start()
        # ... server running ...
        await server.stop()
    """

    def __init__(
        self,
        executor: FlowExecutor,
        store: BackendConfigStore | None = None,
        config: FlowServerConfig | None = None,
    ):
        self._executor = executor
        self._store = store
        self._config = config or FlowServerConfig()
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/api/flow/execute", self._handle_execute)
        app.router.add_get("/api/health", self._handle_health)
        return app

    async def start(self) -> None:
        """Start the HTTP server."""
        self._app = self.build_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await self._site.start()
        logger.info(f"Flow server started on {self._config.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the HTTP server gracefully."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._app = None
            self._site = None
            logger.info("Flow server stopped")

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})

    async def _handle_execute(self, request: web.Request) -> web.Response:
        try:
            body = await request.read()
            payload = json.loads(body) if body else None
        except (json.JSONDecodeError, ValueError):
            return web.json_response(
                {"success": False, "error": "Request body must be valid JSON"}, status=400
            )

        if not isinstance(payload, dict):
            return web.json_response(
                {"success": False, "error": "Request body must be a JSON object"}, status=400
            )

        missing = [name for name in REQUIRED_FIELDS if payload.get(name) is None]
        if missing:
            return web.json_response(
                {"success": False, "error": f"Missing required fields: {', '.join(missing)}"},
                status=400,
            )

        try:
            backend_config = resolve_backend_config(
                self._store,
                inline=payload.get("backendConfig"),
                config_id=payload.get("backendConfigId"),
            )
        except BackendConfigNotFound as e:
            return web.json_response({"success": False, "error": str(e)}, status=404)
        except ValueError as e:
            return web.json_response(
                {"success": False, "error": f"Invalid backend config: {e}"}, status=400
            )

        result = await self._executor.execute_flow(
            graph={"nodes": payload["nodes"], "edges": payload["edges"]},
            task=payload["task"],
            backend_config=backend_config,
            flow_id=payload.get("flowId"),
        )
        return web.json_response(result.to_dict())

    @property
    def is_running(self) -> bool:
        """Check if the server is running."""
        return self._site is not None

    @property
    def port(self) -> int | None:
        """Return the actual listening port (useful when configured with port=0)."""
        if self._site and self._site._server and self._site._server.sockets:
            return self._site._server.sockets[0].getsockname()[1]
        return None
