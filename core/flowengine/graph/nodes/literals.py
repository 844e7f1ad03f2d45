"""Executors for nodes without side effects: condition, text, int and consoleLog."""

import logging
from typing import Any

from flowengine.graph.context import ExecutionContext
from flowengine.graph.node import NodeSpec
from flowengine.graph.nodes.base import NodeExecutor, NodeServices
from flowengine.graph.ports import resolve_input

logger = logging.getLogger(__name__)


class ConditionExecutor(NodeExecutor):
    """
    Returns the node's ``returnText``.

    Starting points have already seeded their attributes into the context,
    so nothing else happens here.
    """

    async def execute(self, node: NodeSpec, ctx: ExecutionContext, services: NodeServices) -> Any:
        fallback = "Condition matched" if node.is_starting_point else "Condition evaluated"
        return node.data.get("returnText") or fallback


class TextExecutor(NodeExecutor):
    async def execute(self, node: NodeSpec, ctx: ExecutionContext, services: NodeServices) -> Any:
        return node.data.get("text")


class IntExecutor(NodeExecutor):
    async def execute(self, node: NodeSpec, ctx: ExecutionContext, services: NodeServices) -> Any:
        return node.data.get("value")


class ConsoleLogExecutor(NodeExecutor):
    """Logs whatever is wired into ``input-value``."""

    async def execute(self, node: NodeSpec, ctx: ExecutionContext, services: NodeServices) -> Any:
        value = resolve_input(node, "input-value", ctx)
        logger.info(f"📝 [consoleLog {node.id}] {value!r}")
        return {"logged": True, "value": value}
