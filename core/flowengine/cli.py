"""
Command-line interface for the flow engine.

Usage:
    flowengine run --graph flow.json --task task.json [--config backend.json]
    flowengine run --graph flow.json --task task.json --configs configs.json --config-id crm
    flowengine validate --graph flow.json
    flowengine serve --port 8080
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _load_json(path: str) -> Any:
    with open(Path(path), encoding="utf-8") as f:
        return json.load(f)


def _build_executor(settings, event_log: str | None = None):
    from flowengine.graph.executor import FlowExecutor
    from flowengine.runtime.event_bus import EventBus
    from flowengine.runtime.sinks import JsonlEventSink
    from flowengine_tools import build_capabilities

    bus = EventBus(queue_size=settings.telemetry_queue_size)
    log_path = event_log or settings.event_log_path
    if log_path:
        JsonlEventSink(Path(log_path).expanduser()).attach(bus)
    executor = FlowExecutor(
        capabilities=build_capabilities(settings=settings),
        event_bus=bus,
        settings=settings,
    )
    return executor, bus


def _build_store(path: str | None):
    from flowengine.storage.config_store import FileBackendConfigStore

    if not path:
        return None
    return FileBackendConfigStore(Path(path).expanduser())


def cmd_run(args: argparse.Namespace) -> int:
    from flowengine.config import EngineSettings
    from flowengine.storage.config_store import BackendConfigNotFound, resolve_backend_config

    settings = EngineSettings()
    try:
        graph = _load_json(args.graph)
        task = _load_json(args.task)
        inline = _load_json(args.config) if args.config else None
    except (OSError, ValueError) as e:
        print(json.dumps({"success": False, "error": f"Could not read input: {e}"}, indent=2))
        return 1

    try:
        store = _build_store(args.configs or settings.backend_configs_path)
        backend_config = resolve_backend_config(store, inline=inline, config_id=args.config_id)
    except BackendConfigNotFound as e:
        print(json.dumps({"success": False, "error": str(e)}, indent=2))
        return 1

    async def _run():
        executor, bus = _build_executor(settings, args.event_log)
        try:
            return await executor.execute_flow(
                graph, task, backend_config=backend_config, flow_id=args.flow_id
            )
        finally:
            await bus.close()

    result = asyncio.run(_run())
    print(json.dumps(result.to_dict(include_context=args.verbose), indent=2, default=str))
    return 0 if result.success else 1


def _credentials_ready(graph) -> bool:
    """Warn about capability credentials the graph's node types need but lack."""
    from flowengine.graph.node import NodeType
    from flowengine_tools import CredentialError, CredentialManager

    node_types: list[str] = []
    for node in graph.nodes:
        node_type = NodeType.parse(node.type)
        if node_type is not None and node_type.value not in node_types:
            node_types.append(node_type.value)
    try:
        CredentialManager().validate_for_node_types(node_types)
    except CredentialError as e:
        print(f"⚠ {e}")
        return False
    return True


def cmd_validate(args: argparse.Namespace) -> int:
    from pydantic import ValidationError

    from flowengine.graph.edge import GraphSpec

    try:
        raw = _load_json(args.graph)
    except (OSError, ValueError) as e:
        print(f"✗ Could not read {args.graph}: {e}")
        return 1
    try:
        graph = GraphSpec.model_validate(raw)
    except ValidationError as e:
        print(f"✗ Graph could not be parsed: {e}")
        return 1

    errors = graph.validate()
    for node in graph.unknown_node_types():
        print(f"⚠ Node {node.id} has unknown type '{node.type}' and will be skipped")
    if errors:
        print(f"✗ {len(errors)} problem(s) found:")
        for error in errors:
            print(f"  - {error}")
        return 1

    if not _credentials_ready(graph) and args.require_credentials:
        return 1

    print(f"✓ Graph is valid ({len(graph.nodes)} nodes, {len(graph.edges)} edges)")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    from flowengine.config import EngineSettings
    from flowengine.runtime.server import FlowServer, FlowServerConfig

    settings = EngineSettings()
    store = _build_store(args.configs or settings.backend_configs_path)

    async def _serve():
        executor, bus = _build_executor(settings, args.event_log)
        server = FlowServer(
            executor,
            store=store,
            config=FlowServerConfig(
                host=args.host or settings.server_host,
                port=args.port if args.port is not None else settings.server_port,
            ),
        )
        await server.start()
        try:
            await asyncio.Event().wait()
        finally:
            await server.stop()
            await bus.close()

    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logger.info("Shutting down")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flowengine",
        description="Flow engine - Run workflow diagrams against incoming tasks",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "--log-format",
        default="auto",
        choices=["auto", "json", "human"],
        help="Log output format",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Execute a flow against a task")
    run_parser.add_argument("--graph", required=True, help="Path to the flow JSON {nodes, edges}")
    run_parser.add_argument("--task", required=True, help="Path to the task JSON")
    run_parser.add_argument("--config", help="Path to an inline backend config JSON")
    run_parser.add_argument("--configs", help="Path to a backend config store file")
    run_parser.add_argument("--config-id", help="Backend config id to use from the store")
    run_parser.add_argument("--flow-id", help="Identifier reported in telemetry")
    run_parser.add_argument("--event-log", help="Directory for per-run JSONL event logs")
    run_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Include run id, path and context"
    )
    run_parser.set_defaults(func=cmd_run)

    validate_parser = subparsers.add_parser("validate", help="Validate a flow graph")
    validate_parser.add_argument("--graph", required=True, help="Path to the flow JSON")
    validate_parser.add_argument(
        "--require-credentials",
        action="store_true",
        help="Fail when a node type's capability credentials are not set",
    )
    validate_parser.set_defaults(func=cmd_validate)

    serve_parser = subparsers.add_parser("serve", help="Serve flow execution over HTTP")
    serve_parser.add_argument("--host", help="Interface to bind")
    serve_parser.add_argument("--port", type=int, help="Port to listen on")
    serve_parser.add_argument("--configs", help="Path to a backend config store file")
    serve_parser.add_argument("--event-log", help="Directory for per-run JSONL event logs")
    serve_parser.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None):
    from flowengine.observability import configure_logging

    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(level=args.log_level.upper(), format=args.log_format)

    if hasattr(args, "func"):
        sys.exit(args.func(args))


if __name__ == "__main__":
    main()
