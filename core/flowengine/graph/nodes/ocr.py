"""OCR node executor."""

import logging
import time
from typing import Any

from flowengine.errors import NodeValidationError
from flowengine.graph.context import ExecutionContext
from flowengine.graph.node import NodeSpec
from flowengine.graph.nodes.base import NodeExecutor, NodeServices, attribute, failure

logger = logging.getLogger(__name__)


class OCRExecutor(NodeExecutor):
    """
    Recognizes text in the image wired into ``attr-attachment_data``.

    The image must be a base64 data URI (what an emailAttachment node
    produces), so this node never needs network access to the mailbox.
    """

    async def execute(self, node: NodeSpec, ctx: ExecutionContext, services: NodeServices) -> Any:
        defaults = node.data.get("ocrAttributes") or {}

        image = attribute(node, ctx, "attachment_data")
        language = attribute(node, ctx, "language", defaults) or "auto"
        enhance_image = bool(attribute(node, ctx, "enhance_image", defaults) or False)

        if not image:
            return failure(NodeValidationError("attachment_data"))
        if not isinstance(image, str) or not image.startswith("data:"):
            return failure("attachment_data must be a base64 data URI")

        provider = services.capabilities.ocr
        if provider is None:
            return failure("OCR provider is not configured")

        start = time.perf_counter()
        try:
            recognized = await provider.recognize(image, language)
            text = str(recognized.get("text") or "")
            confidence = float(recognized.get("confidence") or 0) / 100
        except Exception as e:
            logger.error(f"✗ OCR failed for node {node.id}: {e}")
            return failure(e)
        processing_time_ms = int((time.perf_counter() - start) * 1000)

        ctx.set(f"{node.id}-output-text", text)

        await services.event_bus.emit_ocr_completed(
            run_id=ctx.run_id,
            node_id=node.id,
            confidence=confidence,
            language=language,
            processing_time_ms=processing_time_ms,
            text_length=len(text),
        )
        logger.info(f"✓ OCR extracted {len(text)} chars (confidence {confidence:.2f})")

        return {
            "success": True,
            "text": text,
            "confidence": confidence,
            "language": language,
            "processingTimeMs": processing_time_ms,
            "enhancedImage": enhance_image,
        }
