"""Email node executors: sendMail and emailAttachment."""

import base64
import logging
from typing import Any

from flowengine.errors import NodeValidationError
from flowengine.graph.context import ExecutionContext
from flowengine.graph.node import NodeSpec
from flowengine.graph.nodes.base import NodeExecutor, NodeServices, attribute, failure

logger = logging.getLogger(__name__)


def _recipients(value: Any) -> list[dict[str, str]]:
    """Normalize cc/bcc entries to the transport's ``{display_name, identifier}`` shape."""
    if not value:
        return []
    if isinstance(value, str):
        value = [item.strip() for item in value.split(",") if item.strip()]
    if not isinstance(value, list):
        value = [value]
    recipients = []
    for item in value:
        if isinstance(item, str):
            recipients.append({"display_name": "", "identifier": item})
        elif isinstance(item, dict):
            identifier = item.get("email") or item.get("identifier")
            if identifier:
                recipients.append(
                    {
                        "display_name": item.get("displayName") or item.get("display_name") or "",
                        "identifier": identifier,
                    }
                )
    return recipients


class SendMailExecutor(NodeExecutor):
    """
    Sends an email through the email transport.

    Every field prefers the ``attr-<field>`` port and falls back to the
    node's ``emailAttributes`` (the body default lives under ``content``).
    """

    async def execute(self, node: NodeSpec, ctx: ExecutionContext, services: NodeServices) -> Any:
        defaults = node.email_attributes

        def attr(name: str, default_key: str | None = None) -> Any:
            return attribute(node, ctx, name, defaults, default_key)

        to_email = attr("toEmail")
        if not to_email:
            error = NodeValidationError("toEmail")
            logger.error(f"✗ sendMail {node.id}: {error}")
            return {"sent": False, "error": str(error)}

        message: dict[str, Any] = {
            "to": [{"display_name": attr("toDisplayName") or "", "identifier": to_email}],
            "subject": attr("subject") or "",
            "body": attr("body", "content") or "",
        }
        account_id = attr("account_id") or services.capabilities.default_account_id
        if account_id:
            message["account_id"] = account_id

        from_email = attr("fromEmail")
        if from_email:
            message["from"] = {
                "display_name": attr("fromDisplayName") or "",
                "identifier": from_email,
            }
        reply_to = attr("reply_to")
        if reply_to:
            message["reply_to"] = {"identifier": reply_to}
        cc = _recipients(attr("cc"))
        if cc:
            message["cc"] = cc
        bcc = _recipients(attr("bcc"))
        if bcc:
            message["bcc"] = bcc
        custom_headers = attr("custom_headers")
        if custom_headers:
            message["custom_headers"] = custom_headers

        transport = services.capabilities.email
        if transport is None:
            return {"sent": False, "error": "Email transport is not configured"}

        try:
            response = await transport.send_email(message)
        except Exception as e:
            logger.error(f"✗ Failed to send email from node {node.id}: {e}")
            return {"sent": False, "error": str(e)}

        logger.info(f"✓ Email sent to {to_email}")
        return {"sent": True, "email": message, "response": response}


class EmailAttachmentExecutor(NodeExecutor):
    """Fetches an attachment and returns it as a base64 data URI."""

    async def execute(self, node: NodeSpec, ctx: ExecutionContext, services: NodeServices) -> Any:
        defaults = node.email_attributes

        email_id = attribute(node, ctx, "email_id", defaults)
        attachment_id = attribute(node, ctx, "attachment_id", defaults)
        account_id = (
            attribute(node, ctx, "account_id", defaults)
            or services.capabilities.default_account_id
        )

        for name, value in (("email_id", email_id), ("attachment_id", attachment_id)):
            if not value:
                error = NodeValidationError(name)
                logger.error(f"✗ emailAttachment {node.id}: {error}")
                return failure(error)

        transport = services.capabilities.email
        if transport is None:
            return failure("Email transport is not configured")

        try:
            content, content_type = await transport.fetch_attachment(
                str(email_id), str(attachment_id), account_id=account_id
            )
            encoded = base64.b64encode(content).decode("ascii")
        except Exception as e:
            logger.error(f"✗ Failed to retrieve attachment {attachment_id}: {e}")
            return failure(e)

        data_uri = f"data:{content_type or 'application/octet-stream'};base64,{encoded}"
        ctx.set(f"{node.id}-output-attachment", data_uri)
        logger.info(f"✓ Attachment {attachment_id} retrieved ({len(content)} bytes)")
        return data_uri
