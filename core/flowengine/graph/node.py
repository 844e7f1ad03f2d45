"""
Node Protocol - The typed units of work in a flow diagram.

A node is ``{id, type, data}`` as produced by the visual editor. ``data``
carries type-specific attributes (an API node's method/path/parameters, a
condition node's ``isStartingPoint``/``returnText`` ...), so it stays a
free-form mapping and each executor reads the keys it understands.

The editor historically emitted ``conditionNode``/``apiNode``-style type
names; both spellings map onto the same ``NodeType``.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NodeType(StrEnum):
    """Node kinds the engine knows how to execute."""

    CONDITION = "condition"
    API_CALL = "apiCall"
    TEXT = "text"
    INT = "int"
    SEND_MAIL = "sendMail"
    EMAIL_ATTACHMENT = "emailAttachment"
    OCR = "ocr"
    CONSOLE_LOG = "consoleLog"
    AI = "ai"
    CONDITIONAL_FLOW = "conditionalFlow"

    @classmethod
    def parse(cls, raw: str) -> "NodeType | None":
        """Map an editor type string to a NodeType, or None when unknown."""
        try:
            return cls(raw)
        except ValueError:
            return _EDITOR_ALIASES.get(raw)


_EDITOR_ALIASES: dict[str, NodeType] = {
    "conditionNode": NodeType.CONDITION,
    "apiNode": NodeType.API_CALL,
    "textNode": NodeType.TEXT,
    "intNode": NodeType.INT,
    "sendingMailNode": NodeType.SEND_MAIL,
    "emailAttachmentNode": NodeType.EMAIL_ATTACHMENT,
    "ocrNode": NodeType.OCR,
    "consoleLogNode": NodeType.CONSOLE_LOG,
    "aiNode": NodeType.AI,
    "conditionalFlowNode": NodeType.CONDITIONAL_FLOW,
}


class NodeSpec(BaseModel):
    """
    A node of the flow diagram.

    Example:
        NodeSpec(
            id="start",
            type="condition",
            data={"isStartingPoint": True, "returnText": "invoice_email"},
        )
    """

    id: str
    type: str
    data: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow")

    @property
    def kind(self) -> NodeType | None:
        """The resolved node type, None for types this engine does not support."""
        return NodeType.parse(self.type)

    @property
    def is_starting_point(self) -> bool:
        return self.kind == NodeType.CONDITION and self.data.get("isStartingPoint") is True

    @property
    def email_attributes(self) -> dict[str, Any]:
        return dict(self.data.get("emailAttributes") or {})


class TaskAttachment(BaseModel):
    """Descriptor of an attachment carried by a task (bytes stay remote)."""

    id: str | None = None
    name: str | None = None
    size: int | str | None = None
    extension: str | None = None
    mime: str | None = None
    cid: str | None = None

    model_config = ConfigDict(extra="ignore")


class Task(BaseModel):
    """The concrete unit of work a flow runs against (e.g. an inbound email)."""

    id: str | None = None
    type: str
    source_id: str | None = Field(default=None, alias="sourceId")
    sender_email: str | None = Field(default=None, alias="senderEmail")
    recipient_email: str | None = Field(default=None, alias="recipientEmail")
    sender_name: str | None = Field(default=None, alias="senderName")
    recipient_name: str | None = Field(default=None, alias="recipientName")
    subject: str | None = None
    body: str | None = None
    date: Any = None
    attachments: list[TaskAttachment] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    def to_payload(self) -> dict[str, Any]:
        """Task as the editor sees it (camelCase keys)."""
        return self.model_dump(by_alias=True, exclude_none=True)
