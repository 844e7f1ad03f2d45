"""Node executors and the registry mapping node types to them."""

from flowengine.graph.node import NodeType
from flowengine.graph.nodes.ai import AIExecutor
from flowengine.graph.nodes.api_call import APICallExecutor
from flowengine.graph.nodes.base import NodeExecutor, NodeServices
from flowengine.graph.nodes.conditional_flow import ConditionalFlowExecutor
from flowengine.graph.nodes.literals import (
    ConditionExecutor,
    ConsoleLogExecutor,
    IntExecutor,
    TextExecutor,
)
from flowengine.graph.nodes.mail import EmailAttachmentExecutor, SendMailExecutor
from flowengine.graph.nodes.ocr import OCRExecutor


def default_registry() -> dict[NodeType, NodeExecutor]:
    """A fresh registry with an executor for every built-in node type."""
    return {
        NodeType.CONDITION: ConditionExecutor(),
        NodeType.API_CALL: APICallExecutor(),
        NodeType.TEXT: TextExecutor(),
        NodeType.INT: IntExecutor(),
        NodeType.SEND_MAIL: SendMailExecutor(),
        NodeType.EMAIL_ATTACHMENT: EmailAttachmentExecutor(),
        NodeType.OCR: OCRExecutor(),
        NodeType.CONSOLE_LOG: ConsoleLogExecutor(),
        NodeType.AI: AIExecutor(),
        NodeType.CONDITIONAL_FLOW: ConditionalFlowExecutor(),
    }


__all__ = [
    "NodeExecutor",
    "NodeServices",
    "default_registry",
    "AIExecutor",
    "APICallExecutor",
    "ConditionExecutor",
    "ConditionalFlowExecutor",
    "ConsoleLogExecutor",
    "EmailAttachmentExecutor",
    "IntExecutor",
    "OCRExecutor",
    "SendMailExecutor",
    "TextExecutor",
]
