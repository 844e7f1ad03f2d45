"""AI completion node executor."""

import logging
import time
from typing import Any

from flowengine.errors import NodeValidationError
from flowengine.graph.context import ExecutionContext
from flowengine.graph.node import NodeSpec
from flowengine.graph.nodes.base import NodeExecutor, NodeServices, attribute, failure
from flowengine.graph.ports import resolve_input

logger = logging.getLogger(__name__)


def _optional_float(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _optional_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class AIExecutor(NodeExecutor):
    """
    Sends the node's prompt (system) and input (user) to the LLM.

    The completion is stored at ``<id>-output-completion`` and exposed on
    the ``attr-output`` port. An AI-completion event is emitted whether the
    call succeeds or not.
    """

    async def execute(self, node: NodeSpec, ctx: ExecutionContext, services: NodeServices) -> Any:
        data = node.data
        prompt = attribute(node, ctx, "prompt", data)
        if not prompt:
            return failure(NodeValidationError("prompt"))

        user_input = attribute(node, ctx, "input")
        if user_input in (None, ""):
            user_input = resolve_input(node, "input-value", ctx)
        if user_input in (None, ""):
            user_input = data.get("input") or ""
        if not isinstance(user_input, str):
            user_input = str(user_input)

        llm = services.capabilities.llm
        if llm is None:
            return failure("LLM provider is not configured")

        model = data.get("model") or None
        start = time.perf_counter()
        try:
            response = await llm.complete(
                system=str(prompt),
                user_input=user_input,
                model=model,
                temperature=_optional_float(data.get("temperature")),
                max_tokens=_optional_int(data.get("maxTokens")),
            )
        except Exception as e:
            latency_ms = int((time.perf_counter() - start) * 1000)
            logger.error(f"✗ AI completion failed for node {node.id}: {e}")
            await services.event_bus.emit_ai_completion(
                run_id=ctx.run_id,
                node_id=node.id,
                prompt=str(prompt),
                response=None,
                latency_ms=latency_ms,
                success=False,
                model=model or llm.model,
                error=str(e),
            )
            return failure(e)

        latency_ms = int((time.perf_counter() - start) * 1000)
        ctx.set(f"{node.id}-output-completion", response.content)
        await services.event_bus.emit_ai_completion(
            run_id=ctx.run_id,
            node_id=node.id,
            prompt=str(prompt),
            response=response.content,
            latency_ms=latency_ms,
            success=True,
            model=response.model,
        )
        logger.info(f"✓ AI completion for {node.id} ({latency_ms}ms, {response.model})")
        return response.content
