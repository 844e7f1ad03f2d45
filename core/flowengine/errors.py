"""
Error kinds raised while executing a flow.

Only the API-call executor lets errors escape a node. Every other executor
converts failures into a ``{"success": False, "error": ...}`` value, and the
run orchestrator is the single boundary that turns any escaping error into a
failed run result.
"""

from typing import Any


class FlowError(Exception):
    """Base class for all flow execution errors."""


class GraphValidationError(FlowError):
    """The graph is structurally invalid (dangling edges, bad ports, cycles)."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid graph: {'; '.join(self.errors)}")


class CycleError(GraphValidationError):
    """Execution links form a cycle."""

    def __init__(self, path: list[str]):
        self.path = list(path)
        FlowError.__init__(self, f"Execution cycle detected: {' -> '.join(self.path)}")
        self.errors = [str(self)]


class ResolutionError(FlowError):
    """No unique starting node matches the task type."""


class NodeValidationError(FlowError):
    """A node is missing a required parameter."""

    def __init__(self, parameter: str):
        self.parameter = parameter
        super().__init__(f"Missing required parameter: {parameter}")


class EvaluationError(FlowError):
    """A conditional expression could not be evaluated."""


class TransportError(FlowError):
    """A remote capability could not be reached."""

    def __init__(self, message: str, method: str = "", url: str = ""):
        self.method = method
        self.url = url
        super().__init__(message)


class RemoteAPIError(FlowError):
    """A remote API answered with a non-2xx status."""

    def __init__(
        self,
        status: int,
        status_text: str = "",
        detail: str | None = None,
        method: str = "",
        url: str = "",
        body_preview: str | None = None,
        body: Any = None,
    ):
        self.status = status
        self.status_text = status_text
        self.detail = detail
        self.method = method
        self.url = url
        self.body_preview = body_preview
        self.body = body
        super().__init__(self._compose())

    def _compose(self) -> str:
        message = f"API request failed: {self.status}"
        if self.status_text:
            message += f" {self.status_text}"
        if self.detail:
            message += f" - {self.detail}"
        target = " ".join(part for part in (self.method, self.url) if part)
        if target:
            message += f" ({target})"
        if self.body_preview:
            message += f" | response body: {self.body_preview}"
        return message
