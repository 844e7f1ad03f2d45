"""
Execution Context - the run-scoped key/value store threading data between nodes.

One ``ExecutionContext`` is created per ``execute_flow`` call and handed down
explicitly to every dispatcher and executor call. Nothing about a run lives
on the executor instance, so one executor can serve concurrent runs.

Keys are port identifiers (``attr-subject``, ``param-id``, ``input-value``),
node output slots (``output-<nodeId>``, ``<nodeId>-output-status``) and
``task``.
"""

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from flowengine.graph.node import Task

if TYPE_CHECKING:
    from flowengine.graph.edge import GraphSpec
    from flowengine.schemas.backend_config import BackendConfig


@dataclass
class ExecutionContext:
    """Mutable state of a single flow run."""

    graph: "GraphSpec"
    task: Task
    backend_config: "BackendConfig | None" = None
    flow_id: str | None = None
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    values: dict[str, Any] = field(default_factory=dict)
    # Node ids on the current recursion path (cycle guard)
    active_path: list[str] = field(default_factory=list)
    # Every node executed, in order
    path: list[str] = field(default_factory=list)

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.values[key] = value

    def has(self, key: str) -> bool:
        return key in self.values

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def snapshot(self) -> dict[str, Any]:
        """Shallow copy of the stored values, with the task serialized."""
        data = dict(self.values)
        if isinstance(data.get("task"), Task):
            data["task"] = data["task"].to_payload()
        return data
