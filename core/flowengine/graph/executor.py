"""
Flow Executor - Runs flow diagrams against tasks.

The executor:
1. Validates the graph (ports, execution cycles)
2. Resolves the unique starting node for the task type
3. Seeds a fresh ExecutionContext from the task
4. Executes nodes, copying data along data edges and following execution links
5. Returns a RunResult; no exception escapes ``execute_flow``

The executor holds no per-run state, so one instance can serve concurrent
runs. The OAuth2 token cache is the only state shared between runs.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import ValidationError

from flowengine.capabilities import Capabilities
from flowengine.config import EngineSettings
from flowengine.errors import CycleError, FlowError, ResolutionError
from flowengine.graph.context import ExecutionContext
from flowengine.graph.edge import GraphSpec
from flowengine.graph.node import NodeSpec, NodeType, Task
from flowengine.graph.nodes import NodeExecutor, NodeServices, default_registry
from flowengine.graph.ports import InvalidPortError, get_data_for_handle
from flowengine.http.auth import AuthResolver, OAuth2TokenCache
from flowengine.http.client import APIClient
from flowengine.observability import clear_trace_context, set_trace_context
from flowengine.runtime.event_bus import EventBus
from flowengine.schemas.backend_config import BackendConfig

logger = logging.getLogger(__name__)

# Task field -> attribute name, seeded on every starting node with emailAttributes
ALWAYS_MAPPED = {
    "source_id": "email_id",
    "sender_email": "fromEmail",
    "recipient_email": "toEmail",
}
# Seeded only when the starting node declares the attribute
DECLARED_MAPPED = {
    "sender_name": "fromDisplayName",
    "recipient_name": "toDisplayName",
    "subject": "subject",
    "body": "body",
    "date": "date",
}


@dataclass
class RunResult:
    """Result of executing a flow."""

    success: bool
    result: Any = None
    error: str | None = None
    run_id: str = ""
    path: list[str] = field(default_factory=list)  # Node IDs executed, in order
    context: dict[str, Any] = field(default_factory=dict)  # Final context snapshot
    duration_ms: int = 0

    def to_dict(self, include_context: bool = False) -> dict[str, Any]:
        """The ``{success, result | error}`` run output."""
        data: dict[str, Any] = {"success": self.success}
        if self.success:
            data["result"] = self.result
        else:
            data["error"] = self.error
        if include_context:
            data["runId"] = self.run_id
            data["path"] = self.path
            data["context"] = self.context
        return data


class FlowExecutor:
    """
    Executes flow diagrams.

    Example:
        executor = FlowExecutor(capabilities=Capabilities(llm=MockLLMProvider()))

        result = await executor.execute_flow(
            graph={"nodes": [...], "edges": [...]},
            task={"type": "invoice_email", "sourceId": "abc"},
            backend_config={"baseUrl": "https://api.example.com"},
        )
        if result.success:
            print(result.result)
    """

    def __init__(
        self,
        capabilities: Capabilities | None = None,
        event_bus: EventBus | None = None,
        settings: EngineSettings | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        token_cache: OAuth2TokenCache | None = None,
        registry: dict[NodeType, NodeExecutor] | None = None,
    ):
        """
        Initialize the executor.

        Args:
            capabilities: Remote capabilities (email, OCR, LLM) for node executors
            event_bus: Telemetry bus (a private one is created when omitted)
            settings: Engine settings (loaded from config/env when omitted)
            http_transport: Optional httpx transport for API calls and OAuth2
            token_cache: OAuth2 token cache (process-wide cache when omitted)
            registry: Node executors by type (built-in executors when omitted)
        """
        self.settings = settings or EngineSettings()
        self.event_bus = event_bus or EventBus(queue_size=self.settings.telemetry_queue_size)
        self.registry = registry if registry is not None else default_registry()
        self.services = NodeServices(
            capabilities=capabilities or Capabilities(),
            event_bus=self.event_bus,
            api_client=APIClient(
                transport=http_transport,
                production=self.settings.is_production,
                retry_backoff=self.settings.retry_backoff_seconds,
            ),
            auth=AuthResolver(token_cache=token_cache, transport=http_transport),
            settings=self.settings,
        )

    def register(self, node_type: NodeType, executor: NodeExecutor) -> None:
        """Register (or replace) the executor for a node type."""
        self.registry[node_type] = executor

    # === RUN ORCHESTRATION ===

    async def execute_flow(
        self,
        graph: GraphSpec | dict[str, Any],
        task: Task | dict[str, Any],
        backend_config: BackendConfig | dict[str, Any] | None = None,
        flow_id: str | None = None,
    ) -> RunResult:
        """
        Execute a flow for a task.

        Args:
            graph: The flow diagram ``{nodes, edges}``
            task: The task to run the flow against
            backend_config: Backend used by API nodes
            flow_id: Optional identifier of the stored flow (for telemetry)

        Returns:
            RunResult; failures are reported in it, never raised
        """
        start = time.perf_counter()
        try:
            graph = graph if isinstance(graph, GraphSpec) else GraphSpec.model_validate(graph)
            task = task if isinstance(task, Task) else Task.model_validate(task)
            if backend_config is not None and not isinstance(backend_config, BackendConfig):
                backend_config = BackendConfig.model_validate(backend_config)
        except ValidationError as e:
            logger.error(f"✗ Invalid flow input: {e}")
            return RunResult(success=False, error=f"Invalid flow input: {e}")

        ctx = ExecutionContext(
            graph=graph, task=task, backend_config=backend_config, flow_id=flow_id
        )
        set_trace_context(run_id=ctx.run_id, task_id=task.id, flow_id=flow_id)
        logger.info(f"▶ Starting run for task {task.id} ({task.type})")

        try:
            await self.event_bus.emit_run_started(ctx.run_id, task.to_payload())

            graph.ensure_valid()
            starting_node = self.resolve_starting_node(graph, task)
            logger.info(f"✓ Found starting node {starting_node.id} for task type '{task.type}'")
            self.seed_context(ctx, starting_node)

            result = await self.execute_node(starting_node, ctx)

        except Exception as e:
            duration_ms = int((time.perf_counter() - start) * 1000)
            if isinstance(e, FlowError):
                logger.error(f"✗ Run failed: {e}")
            else:
                logger.exception(f"✗ Run failed with unexpected error: {e}")
            await self.event_bus.emit_run_failed(ctx.run_id, str(e), duration_ms)
            return RunResult(
                success=False,
                error=str(e),
                run_id=ctx.run_id,
                path=list(ctx.path),
                context=ctx.snapshot(),
                duration_ms=duration_ms,
            )
        finally:
            clear_trace_context()

        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(f"✓ Run {ctx.run_id[:8]} completed in {duration_ms}ms")
        await self.event_bus.emit_run_completed(ctx.run_id, result, duration_ms)
        return RunResult(
            success=True,
            result=result,
            run_id=ctx.run_id,
            path=list(ctx.path),
            context=ctx.snapshot(),
            duration_ms=duration_ms,
        )

    def resolve_starting_node(self, graph: GraphSpec, task: Task) -> NodeSpec:
        """
        Find the condition node flagged as starting point for ``task.type``.

        Raises:
            ResolutionError: no candidate, or more than one
        """
        candidates = graph.starting_candidates(task.type)
        if not candidates:
            raise ResolutionError(f"No starting node found for task type '{task.type}'")
        if len(candidates) > 1:
            ids = ", ".join(node.id for node in candidates)
            raise ResolutionError(
                f"Multiple starting nodes match task type '{task.type}': {ids}"
            )
        return candidates[0]

    def seed_context(self, ctx: ExecutionContext, starting_node: NodeSpec) -> None:
        """Store the task and the starting node's email attributes in the context."""
        task = ctx.task
        ctx.set("task", task)

        declared = starting_node.data.get("emailAttributes")
        if isinstance(declared, dict):
            attributes = dict(declared)
            for task_field, name in ALWAYS_MAPPED.items():
                attributes[name] = getattr(task, task_field) or declared.get(name)
            for task_field, name in DECLARED_MAPPED.items():
                if name in declared:
                    attributes[name] = getattr(task, task_field) or declared.get(name)
            for name, value in attributes.items():
                ctx.set(f"attr-{name}", value)
            logger.info(
                f"📧 Seeded {len(attributes)} attributes "
                f"(email_id={attributes.get('email_id')})"
            )

        if task.attachments:
            descriptors = [a.model_dump() for a in task.attachments]
            ctx.set("attr-attachments", descriptors)
            for index, attachment in enumerate(task.attachments):
                if attachment.id:
                    ctx.set(f"attr-attachment-{index}", attachment.id)
            if task.attachments[0].id:
                ctx.set("attr-attachment_id", task.attachments[0].id)
            logger.info(f"📎 Task carries {len(descriptors)} attachment(s)")

    # === NODE DISPATCH ===

    async def execute_node(self, node: NodeSpec, ctx: ExecutionContext) -> Any:
        """
        Execute ``node``, propagate its outputs and follow its execution links.

        Returns:
            The list of downstream results when execution links were
            followed, else the node's own output

        Raises:
            CycleError: ``node`` is already on the current execution path
        """
        if node.id in ctx.active_path:
            loop_start = ctx.active_path.index(node.id)
            raise CycleError(ctx.active_path[loop_start:] + [node.id])

        ctx.active_path.append(node.id)
        ctx.path.append(node.id)
        try:
            output = await self._run_executor(node, ctx)
            await self._propagate_data(node, ctx)
            return await self._follow_execution_links(node, ctx, output)
        finally:
            ctx.active_path.pop()

    async def _run_executor(self, node: NodeSpec, ctx: ExecutionContext) -> Any:
        set_trace_context(node_id=node.id, node_type=node.type)
        await self.event_bus.emit_node_started(ctx.run_id, node.id, node.type)
        start = time.perf_counter()

        kind = node.kind
        executor = self.registry.get(kind) if kind is not None else None
        if executor is None:
            message = f"Unknown node type: {node.type}"
            logger.warning(f"⚠ {message} (node {node.id})")
            await self.event_bus.emit_warning(
                ctx.run_id, message, node_id=node.id, node_type=node.type
            )
            output = None
        else:
            output = await executor.execute(node, ctx, self.services)

        ctx.set(f"output-{node.id}", output)
        if kind == NodeType.API_CALL and output is not None:
            ctx.set(f"{node.id}-output", output)
            ctx.set(f"{node.id}-output-response", output)
            ctx.set(f"{node.id}-output-body", output)
            if not ctx.has(f"{node.id}-output-status"):
                ctx.set(f"{node.id}-output-status", 200)

        latency_ms = int((time.perf_counter() - start) * 1000)
        await self.event_bus.emit_node_completed(
            ctx.run_id, node.id, node.type, output=output, latency_ms=latency_ms
        )
        return output

    async def _propagate_data(self, node: NodeSpec, ctx: ExecutionContext) -> None:
        for edge in ctx.graph.get_outgoing_edges(node.id):
            if not edge.is_data_edge:
                continue
            target = ctx.graph.get_node(edge.target)
            if target is None:
                continue
            try:
                value = get_data_for_handle(node, edge.source_handle, ctx)
            except InvalidPortError as e:
                logger.warning(f"⚠ Skipping edge {edge.label}: {e}")
                continue
            if value is None:
                continue
            ctx.set(edge.target_handle, value)
            logger.debug(
                f"Passing data from {node.id}.{edge.source_handle} "
                f"to {target.id}.{edge.target_handle}"
            )
            await self.event_bus.emit_data_transfer(
                ctx.run_id, node.id, edge.source_handle, target.id, edge.target_handle, value
            )

    async def _follow_execution_links(
        self, node: NodeSpec, ctx: ExecutionContext, output: Any
    ) -> Any:
        edges = [e for e in ctx.graph.get_outgoing_edges(node.id) if e.is_execution_link]

        if node.kind == NodeType.CONDITIONAL_FLOW:
            branch_handle = f"execution-{output}"
            edges = [e for e in edges if e.source_handle == branch_handle]
            if not edges:
                message = f"No execution edge for branch '{output}' on node {node.id}"
                logger.warning(f"⚠ {message}")
                await self.event_bus.emit_warning(
                    ctx.run_id, message, node_id=node.id, node_type=node.type
                )

        results = []
        for edge in edges:
            target = ctx.graph.get_node(edge.target)
            if target is None:
                continue
            logger.info(f"Following execution link {node.id} → {target.id}")
            results.append(await self.execute_node(target, ctx))

        return results if results else output
