"""Conditional-flow node executor."""

import logging
from typing import Any

from flowengine.graph.conditions import evaluate_branch
from flowengine.graph.context import ExecutionContext
from flowengine.graph.node import NodeSpec
from flowengine.graph.nodes.base import NodeExecutor, NodeServices
from flowengine.graph.ports import resolve_input

logger = logging.getLogger(__name__)


class ConditionalFlowExecutor(NodeExecutor):
    """
    Compares ``inputValue`` with ``compareValue`` and returns the branch
    (``"true"``, ``"false"`` or ``"default"``). The dispatcher then follows
    only the ``execution-<branch>`` edge.
    """

    async def execute(self, node: NodeSpec, ctx: ExecutionContext, services: NodeServices) -> Any:
        data = node.data

        input_value = resolve_input(node, "input-value", ctx)
        if input_value is None:
            input_value = resolve_input(node, "attr-inputValue", ctx)
        if input_value is None:
            input_value = data.get("inputValue")

        compare_value = resolve_input(node, "attr-compareValue", ctx)
        if compare_value is None:
            compare_value = data.get("compareValue")

        condition_type = data.get("conditionType") or ""
        result = evaluate_branch(condition_type, input_value, compare_value)
        logger.info(
            f"Condition {node.id}: {input_value!r} {condition_type} {compare_value!r} → {result}"
        )

        ctx.set(f"{node.id}-output-result", result)
        return result
