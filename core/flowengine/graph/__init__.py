"""Graph structures: Nodes, Edges, Ports and Flow Execution."""

from flowengine.graph.conditions import evaluate_branch, evaluate_condition
from flowengine.graph.context import ExecutionContext
from flowengine.graph.edge import EdgeSpec, GraphSpec
from flowengine.graph.executor import FlowExecutor, RunResult
from flowengine.graph.node import NodeSpec, NodeType, Task, TaskAttachment
from flowengine.graph.nodes import NodeExecutor, NodeServices, default_registry
from flowengine.graph.ports import Port, PortKind, get_data_for_handle

__all__ = [
    # Structure
    "NodeSpec",
    "NodeType",
    "EdgeSpec",
    "GraphSpec",
    "Task",
    "TaskAttachment",
    # Ports
    "Port",
    "PortKind",
    "get_data_for_handle",
    # Conditions
    "evaluate_condition",
    "evaluate_branch",
    # Execution
    "ExecutionContext",
    "FlowExecutor",
    "RunResult",
    "NodeExecutor",
    "NodeServices",
    "default_registry",
]
