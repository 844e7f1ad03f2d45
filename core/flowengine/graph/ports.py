"""
Ports - typed addressing of node inputs and outputs.

The editor names ports with string prefixes (``attr-subject``,
``output-status``, ``body-amount``, ``execution-true``). ``Port.parse`` turns
such a handle into a tagged ``PortKind`` plus a name, and every node type owns
an explicit resolver describing which output ports it exposes and where their
values live in the execution context.

Resolution precedence:

    condition        attr-*                    → context[handle]
    int              attr-int                  → literal value
    apiCall          output                    → context["<id>-output"]
    apiCall          output-<X>                → context["<id>-output-<X>"]
    emailAttachment  output-attachment         → context["<id>-output-attachment"]
    ocr              output-text               → context["<id>-output-text"]
    ai               attr-output               → context["<id>-output-completion"]
    conditionalFlow  output-result             → context["<id>-output-result"]
    text             <any>                     → literal text
    apiCall          body-<field>              → context[handle] or default body
    <fallback>                                 → context["output-<id>"]
"""

import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from flowengine.graph.context import ExecutionContext
from flowengine.graph.node import NodeSpec, NodeType


class InvalidPortError(ValueError):
    """A handle string does not name a valid port."""


class PortKind(StrEnum):
    """Kinds of ports a handle can address."""

    ATTRIBUTE = "attribute"  # attr-<name>
    ATTACHMENT = "attachment"  # attr-attachment-<index>
    OUTPUT = "output"  # output
    OUTPUT_FIELD = "output_field"  # output-<name>
    BODY_FIELD = "body_field"  # body-<field>
    PARAM = "param"  # param-<name>
    INPUT = "input"  # input-<name>
    EXECUTION = "execution"  # execution-<branch>
    GENERIC = "generic"  # anything else


_PREFIXES: list[tuple[str, PortKind]] = [
    ("attr-", PortKind.ATTRIBUTE),
    ("output-", PortKind.OUTPUT_FIELD),
    ("body-", PortKind.BODY_FIELD),
    ("param-", PortKind.PARAM),
    ("input-", PortKind.INPUT),
    ("execution-", PortKind.EXECUTION),
]

_ATTACHMENT_INDEX = re.compile(r"^attachment-(\d+)$")


@dataclass(frozen=True)
class Port:
    """A parsed handle."""

    handle: str
    kind: PortKind
    name: str = ""

    @property
    def index(self) -> int | None:
        """Attachment index for ATTACHMENT ports."""
        if self.kind != PortKind.ATTACHMENT:
            return None
        match = _ATTACHMENT_INDEX.match(self.name)
        return int(match.group(1)) if match else None

    @classmethod
    def parse(cls, handle: str | None) -> "Port":
        if not handle:
            raise InvalidPortError("Empty port handle")
        if handle == "output":
            return cls(handle=handle, kind=PortKind.OUTPUT)

        for prefix, kind in _PREFIXES:
            if not handle.startswith(prefix):
                continue
            name = handle[len(prefix) :]
            if not name:
                raise InvalidPortError(f"Port handle '{handle}' has no name after '{prefix}'")
            if kind == PortKind.ATTRIBUTE and name.startswith("attachment-"):
                if not _ATTACHMENT_INDEX.match(name):
                    raise InvalidPortError(
                        f"Attachment port '{handle}' must end with a numeric index"
                    )
                return cls(handle=handle, kind=PortKind.ATTACHMENT, name=name)
            return cls(handle=handle, kind=kind, name=name)

        return cls(handle=handle, kind=PortKind.GENERIC, name=handle)


# Sentinel: resolver has no specific answer, use the generic output slot
UNRESOLVED = object()

PortResolver = Callable[[NodeSpec, Port, ExecutionContext], Any]


def _condition_ports(node: NodeSpec, port: Port, ctx: ExecutionContext) -> Any:
    if port.kind in (PortKind.ATTRIBUTE, PortKind.ATTACHMENT):
        return ctx.get(port.handle)
    return UNRESOLVED


def _int_ports(node: NodeSpec, port: Port, ctx: ExecutionContext) -> Any:
    if port.kind == PortKind.ATTRIBUTE and port.name == "int":
        return node.data.get("value")
    return UNRESOLVED


def _api_call_ports(node: NodeSpec, port: Port, ctx: ExecutionContext) -> Any:
    if port.kind == PortKind.OUTPUT:
        return ctx.get(f"{node.id}-output")
    if port.kind == PortKind.OUTPUT_FIELD:
        return ctx.get(f"{node.id}-output-{port.name}")
    if port.kind == PortKind.BODY_FIELD:
        if ctx.has(port.handle):
            return ctx.get(port.handle)
        return default_body(node).get(port.name)
    return UNRESOLVED


def _fixed_output(field_name: str, slot: str) -> PortResolver:
    def resolve(node: NodeSpec, port: Port, ctx: ExecutionContext) -> Any:
        if port.kind == PortKind.OUTPUT_FIELD and port.name == field_name:
            return ctx.get(f"{node.id}-output-{slot}")
        return UNRESOLVED

    return resolve


def _ai_ports(node: NodeSpec, port: Port, ctx: ExecutionContext) -> Any:
    if port.kind == PortKind.ATTRIBUTE and port.name == "output":
        return ctx.get(f"{node.id}-output-completion")
    return UNRESOLVED


def _text_ports(node: NodeSpec, port: Port, ctx: ExecutionContext) -> Any:
    return node.data.get("text")


PORT_RESOLVERS: dict[NodeType, PortResolver] = {
    NodeType.CONDITION: _condition_ports,
    NodeType.INT: _int_ports,
    NodeType.API_CALL: _api_call_ports,
    NodeType.EMAIL_ATTACHMENT: _fixed_output("attachment", "attachment"),
    NodeType.OCR: _fixed_output("text", "text"),
    NodeType.AI: _ai_ports,
    NodeType.CONDITIONAL_FLOW: _fixed_output("result", "result"),
    NodeType.TEXT: _text_ports,
}

# Output ports each node type may be wired from on a data edge.
# (kind, name) with name None meaning "any name". Types missing from this
# table accept any handle and resolve through their generic output slot.
EXPOSED_PORTS: dict[NodeType, set[tuple[PortKind, str | None]]] = {
    NodeType.CONDITION: {(PortKind.ATTRIBUTE, None), (PortKind.ATTACHMENT, None)},
    NodeType.INT: {(PortKind.ATTRIBUTE, "int")},
    NodeType.API_CALL: {
        (PortKind.OUTPUT, None),
        (PortKind.OUTPUT_FIELD, None),
        (PortKind.BODY_FIELD, None),
    },
    NodeType.EMAIL_ATTACHMENT: {(PortKind.OUTPUT_FIELD, "attachment")},
    NodeType.OCR: {(PortKind.OUTPUT_FIELD, "text")},
    NodeType.AI: {(PortKind.ATTRIBUTE, "output")},
    NodeType.CONDITIONAL_FLOW: {(PortKind.OUTPUT_FIELD, "result")},
}


def check_output_port(node: NodeSpec, handle: str | None) -> str | None:
    """
    Validate that ``node`` can be the source of a data edge at ``handle``.

    Returns an error message, or None when the handle is acceptable.
    """
    try:
        port = Port.parse(handle)
    except InvalidPortError as e:
        return f"Node '{node.id}': {e}"

    kind = node.kind
    allowed = EXPOSED_PORTS.get(kind) if kind else None
    if allowed is None or port.kind == PortKind.GENERIC:
        return None
    if (port.kind, None) in allowed or (port.kind, port.name) in allowed:
        return None
    return f"Node '{node.id}' ({node.type}) does not expose output port '{handle}'"


def get_data_for_handle(node: NodeSpec, handle: str, ctx: ExecutionContext) -> Any:
    """Resolve the value sitting at ``handle`` on ``node``."""
    port = Port.parse(handle)
    kind = node.kind
    resolver = PORT_RESOLVERS.get(kind) if kind else None
    if resolver is not None:
        value = resolver(node, port, ctx)
        if value is not UNRESOLVED:
            return value
    return ctx.get(f"output-{node.id}")


def default_body(node: NodeSpec) -> dict[str, Any]:
    """The default request body declared on an API node (dict, possibly JSON text)."""
    raw = node.data.get("defaultBody")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return {}
    return dict(raw) if isinstance(raw, dict) else {}


def resolve_input(node: NodeSpec, handle: str, ctx: ExecutionContext) -> Any:
    """
    Value wired into ``handle`` on ``node``.

    Reads the context first (a source that already ran has copied its value
    there); otherwise walks the first incoming edge targeting ``handle`` back
    to its source port, which covers literal nodes that never execute.
    """
    value = ctx.get(handle)
    if value is not None:
        return value
    for edge in ctx.graph.get_incoming_edges(node.id):
        if edge.target_handle != handle or not edge.source_handle:
            continue
        source = ctx.graph.get_node(edge.source)
        if source is None:
            continue
        try:
            return get_data_for_handle(source, edge.source_handle, ctx)
        except InvalidPortError:
            return None
    return None
