"""
Flow execution engine.

Runs flow diagrams (nodes connected by data edges and execution links)
against incoming tasks such as emails: resolves the starting node for the
task type, seeds a per-run context, then walks the graph calling APIs,
sending mail, running OCR and AI completions along the way.
"""

from flowengine.capabilities import Capabilities, EmailTransport, OCRProvider
from flowengine.config import EngineSettings
from flowengine.errors import (
    CycleError,
    EvaluationError,
    FlowError,
    GraphValidationError,
    NodeValidationError,
    RemoteAPIError,
    ResolutionError,
    TransportError,
)
from flowengine.graph import FlowExecutor, GraphSpec, NodeType, RunResult, Task
from flowengine.runtime import EventBus, EventType, ExecutionEvent
from flowengine.schemas import BackendConfig

__all__ = [
    "FlowExecutor",
    "RunResult",
    "GraphSpec",
    "NodeType",
    "Task",
    "BackendConfig",
    "Capabilities",
    "EmailTransport",
    "OCRProvider",
    "EngineSettings",
    "EventBus",
    "EventType",
    "ExecutionEvent",
    # Errors
    "FlowError",
    "GraphValidationError",
    "CycleError",
    "ResolutionError",
    "NodeValidationError",
    "EvaluationError",
    "TransportError",
    "RemoteAPIError",
]
