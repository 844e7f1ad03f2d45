"""
Edge Protocol - How nodes connect in a flow diagram.

Edges come in two flavours:
- data edges: copy the value at ``sourceHandle`` on the source node into the
  context under ``targetHandle`` once the source has executed
- execution links: after the source has executed, run the target

The editor sends the execution flag either at the top level
(``isExecutionLink``) or nested under ``data``; both shapes are accepted.
"""

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from flowengine.errors import CycleError, GraphValidationError
from flowengine.graph.node import NodeSpec, NodeType
from flowengine.graph.ports import InvalidPortError, Port, check_output_port

logger = logging.getLogger(__name__)


class EdgeSpec(BaseModel):
    """
    An edge between two nodes.

    Examples:
        # Data edge: the OCR text becomes the AI node's input
        EdgeSpec(
            source="ocr-1",
            target="ai-1",
            sourceHandle="output-text",
            targetHandle="attr-input",
        )

        # Execution link: run the API node after the start node
        EdgeSpec(source="start", target="api-1", isExecutionLink=True)
    """

    id: str | None = None
    source: str
    target: str
    source_handle: str | None = Field(default=None, alias="sourceHandle")
    target_handle: str | None = Field(default=None, alias="targetHandle")
    is_execution_link: bool = Field(default=False, alias="isExecutionLink")
    data: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @model_validator(mode="before")
    @classmethod
    def _lift_execution_flag(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        if values.get("isExecutionLink") is None and values.get("is_execution_link") is None:
            data = values.get("data") or {}
            if isinstance(data, dict) and "isExecutionLink" in data:
                values = {**values, "isExecutionLink": bool(data["isExecutionLink"])}
        return values

    @property
    def label(self) -> str:
        return self.id or f"{self.source}->{self.target}"

    @property
    def is_data_edge(self) -> bool:
        return not self.is_execution_link and bool(self.source_handle and self.target_handle)


class GraphSpec(BaseModel):
    """
    A complete flow diagram: ``{nodes, edges}`` as saved by the editor.

    The graph itself knows nothing about tasks; ``starting_candidates`` selects
    the condition nodes flagged as entry points for a given task type.
    """

    nodes: list[NodeSpec] = Field(default_factory=list)
    edges: list[EdgeSpec] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")

    def get_node(self, node_id: str) -> NodeSpec | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_outgoing_edges(self, node_id: str) -> list[EdgeSpec]:
        return [e for e in self.edges if e.source == node_id]

    def get_incoming_edges(self, node_id: str) -> list[EdgeSpec]:
        return [e for e in self.edges if e.target == node_id]

    def starting_candidates(self, task_type: str) -> list[NodeSpec]:
        """Condition nodes flagged ``isStartingPoint`` whose ``returnText`` is ``task_type``."""
        return [
            node
            for node in self.nodes
            if node.is_starting_point and node.data.get("returnText") == task_type
        ]

    def find_execution_cycle(self) -> list[str] | None:
        """Return the node ids of one cycle formed by execution links, or None."""
        successors: dict[str, list[str]] = {}
        for edge in self.edges:
            if edge.is_execution_link:
                successors.setdefault(edge.source, []).append(edge.target)

        # 0 = unvisited, 1 = on stack, 2 = done
        state: dict[str, int] = {}
        stack: list[str] = []

        def visit(node_id: str) -> list[str] | None:
            state[node_id] = 1
            stack.append(node_id)
            for nxt in successors.get(node_id, []):
                if state.get(nxt) == 1:
                    return stack[stack.index(nxt) :] + [nxt]
                if state.get(nxt, 0) == 0:
                    found = visit(nxt)
                    if found:
                        return found
            stack.pop()
            state[node_id] = 2
            return None

        for node_id in list(successors):
            if state.get(node_id, 0) == 0:
                found = visit(node_id)
                if found:
                    return found
        return None

    def validate(self) -> list[str]:
        """Validate the graph structure. Returns a list of error messages."""
        errors = []

        # Check node ids are unique
        seen: set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                errors.append(f"Duplicate node id: '{node.id}'")
            seen.add(node.id)

        for edge in self.edges:
            source = self.get_node(edge.source)
            target = self.get_node(edge.target)
            if source is None or target is None:
                # Skipped at run time
                logger.warning(f"Edge '{edge.label}' references a missing node")
                continue
            if not edge.is_data_edge:
                continue

            problem = check_output_port(source, edge.source_handle)
            if problem:
                errors.append(f"Edge '{edge.label}': {problem}")
            try:
                Port.parse(edge.target_handle)
            except InvalidPortError as e:
                errors.append(f"Edge '{edge.label}': node '{target.id}': {e}")

        cycle = self.find_execution_cycle()
        if cycle:
            errors.append(f"Execution cycle detected: {' -> '.join(cycle)}")

        return errors

    def ensure_valid(self) -> None:
        """Raise ``CycleError`` or ``GraphValidationError`` for an invalid graph."""
        cycle = self.find_execution_cycle()
        if cycle:
            raise CycleError(cycle)
        errors = self.validate()
        if errors:
            raise GraphValidationError(errors)

    def unknown_node_types(self) -> list[NodeSpec]:
        return [node for node in self.nodes if NodeType.parse(node.type) is None]
