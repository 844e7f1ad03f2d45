"""
Node Executor protocol.

Each node type has one executor object registered under its ``NodeType``.
Executors receive the node, the run's ``ExecutionContext`` and the shared
``NodeServices`` and return the node's output value.

Failure contract: every executor except the API-call executor converts
failures into a structured value (``{"success": False, "error": ...}`` or the
node's own failure shape) and never raises.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from flowengine.capabilities import Capabilities
from flowengine.config import EngineSettings
from flowengine.graph.context import ExecutionContext
from flowengine.graph.node import NodeSpec
from flowengine.graph.ports import resolve_input
from flowengine.http.auth import AuthResolver
from flowengine.http.client import APIClient
from flowengine.runtime.event_bus import EventBus

logger = logging.getLogger(__name__)


@dataclass
class NodeServices:
    """Collaborators shared by every node of every run."""

    capabilities: Capabilities
    event_bus: EventBus
    api_client: APIClient
    auth: AuthResolver
    settings: EngineSettings = field(default_factory=EngineSettings)


class NodeExecutor(ABC):
    """Executes one kind of node."""

    @abstractmethod
    async def execute(self, node: NodeSpec, ctx: ExecutionContext, services: NodeServices) -> Any:
        """Run ``node`` and return its output."""
        pass


def failure(error: str | Exception) -> dict[str, Any]:
    """The structured failure value returned by non-raising executors."""
    return {"success": False, "error": str(error)}


def attribute(
    node: NodeSpec,
    ctx: ExecutionContext,
    name: str,
    defaults: dict[str, Any] | None = None,
    default_key: str | None = None,
) -> Any:
    """
    Resolve attribute ``name``: the ``attr-<name>`` port if it carries a
    non-empty value, else ``defaults[default_key or name]``.
    """
    value = resolve_input(node, f"attr-{name}", ctx)
    if value not in (None, ""):
        return value
    return (defaults or {}).get(default_key or name)
