"""
Event Bus - Telemetry channel for flow runs.

Executors and the orchestrator publish structured events (run/node
lifecycle, data transfers, API calls, AI and OCR completions, warnings).
Events are recorded in an in-memory history immediately and handed to a
bounded queue; a background worker delivers them to subscribers so a slow
sink never stalls a run.

Example:
    bus = EventBus()

    async def on_node_completed(event: ExecutionEvent):
        print(f"{event.node_id} finished in {event.payload['latencyMs']}ms")

    bus.subscribe(event_types=[EventType.NODE_COMPLETED], handler=on_node_completed)

    await bus.emit_node_completed(run_id="r1", node_id="api-1", node_type="apiCall")
    await bus.flush()
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from flowengine.observability.logging import get_trace_context
from flowengine.runtime.masking import mask_payload

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    """Types of events that can be published."""

    # Run lifecycle
    RUN_STARTED = "run_started"
    RUN_COMPLETED = "run_completed"
    RUN_FAILED = "run_failed"

    # Node lifecycle
    NODE_STARTED = "node_started"
    NODE_COMPLETED = "node_completed"

    # Data flow
    DATA_TRANSFER = "data_transfer"

    # Remote calls
    API_REQUEST = "api_request"
    API_RESPONSE = "api_response"
    API_ERROR = "api_error"
    AI_COMPLETION = "ai_completion"
    OCR_COMPLETED = "ocr_completed"

    WARNING = "warning"


class EventLevel(StrEnum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class ExecutionEvent:
    """A structured telemetry event."""

    type: EventType
    message: str
    level: EventLevel = EventLevel.INFO
    run_id: str | None = None
    node_id: str | None = None
    node_type: str | None = None
    task_id: str | None = None
    flow_id: str | None = None
    payload: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        data = {
            "type": self.type.value,
            "level": self.level.value,
            "message": self.message,
            "runId": self.run_id,
            "timestamp": self.timestamp.isoformat(),
        }
        optional = {
            "nodeId": self.node_id,
            "nodeType": self.node_type,
            "taskId": self.task_id,
            "flowId": self.flow_id,
            "payload": self.payload,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


# Type for event handlers
EventHandler = Callable[[ExecutionEvent], Awaitable[None]]


@dataclass
class Subscription:
    """A subscription to events."""

    id: str
    event_types: set[EventType] | None  # None means every type
    handler: EventHandler
    filter_run: str | None = None
    filter_node: str | None = None


class EventBus:
    """
    Queue-backed pub/sub bus for execution telemetry.

    Features:
    - Bounded delivery queue with a background worker
    - Handler delivery retried up to ``max_delivery_attempts`` times
    - Type, run and node filtering
    - Event history for debugging and the ``get_stats`` report
    """

    def __init__(
        self,
        max_history: int = 1000,
        queue_size: int = 1000,
        max_delivery_attempts: int = 3,
        retry_delay: float = 0.05,
    ):
        """
        Initialize event bus.

        Args:
            max_history: Maximum events to keep in history
            queue_size: Capacity of the delivery queue
            max_delivery_attempts: Attempts per handler before giving up
            retry_delay: Base delay (seconds) between delivery attempts
        """
        self._subscriptions: dict[str, Subscription] = {}
        self._event_history: list[ExecutionEvent] = []
        self._max_history = max_history
        self._queue_size = queue_size
        self._max_delivery_attempts = max(1, max_delivery_attempts)
        self._retry_delay = retry_delay
        self._queue: asyncio.Queue[ExecutionEvent] | None = None
        self._worker: asyncio.Task | None = None
        self._subscription_counter = 0
        self._dropped = 0
        self._delivered = 0
        self._failed_deliveries = 0
        self._closed = False

    # === SUBSCRIPTIONS ===

    def subscribe(
        self,
        handler: EventHandler,
        event_types: list[EventType] | None = None,
        filter_run: str | None = None,
        filter_node: str | None = None,
    ) -> str:
        """
        Subscribe to events.

        Args:
            handler: Async function to call when event occurs
            event_types: Types of events to receive (all when omitted)
            filter_run: Only receive events from this run
            filter_node: Only receive events from this node

        Returns:
            Subscription ID (use to unsubscribe)
        """
        self._subscription_counter += 1
        sub_id = f"sub_{self._subscription_counter}"
        self._subscriptions[sub_id] = Subscription(
            id=sub_id,
            event_types=set(event_types) if event_types else None,
            handler=handler,
            filter_run=filter_run,
            filter_node=filter_node,
        )
        logger.debug(f"Subscription {sub_id} registered for {event_types or 'all events'}")
        return sub_id

    def unsubscribe(self, subscription_id: str) -> bool:
        if subscription_id in self._subscriptions:
            del self._subscriptions[subscription_id]
            logger.debug(f"Subscription {subscription_id} removed")
            return True
        return False

    def _matches(self, subscription: Subscription, event: ExecutionEvent) -> bool:
        if subscription.event_types is not None and event.type not in subscription.event_types:
            return False
        if subscription.filter_run and subscription.filter_run != event.run_id:
            return False
        if subscription.filter_node and subscription.filter_node != event.node_id:
            return False
        return True

    # === PUBLISHING ===

    def _remember(self, event: ExecutionEvent) -> None:
        self._event_history.append(event)
        if len(self._event_history) > self._max_history:
            self._event_history = self._event_history[-self._max_history :]

    def _ensure_worker(self) -> asyncio.Queue[ExecutionEvent]:
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self._queue_size)
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._deliver_loop())
        return self._queue

    async def publish(self, event: ExecutionEvent) -> None:
        """Record ``event`` and queue it for delivery, waiting for queue space."""
        if self._closed:
            logger.debug(f"Event bus closed, dropping {event.type}")
            return
        self._remember(event)
        queue = self._ensure_worker()
        await queue.put(event)

    def record(self, event: ExecutionEvent) -> bool:
        """
        Record ``event`` without waiting.

        Returns False when the event could not be queued (bus closed, no
        running loop or queue full); the event is still kept in history.
        """
        self._remember(event)
        if self._closed:
            return False
        try:
            queue = self._ensure_worker()
            queue.put_nowait(event)
        except (RuntimeError, asyncio.QueueFull):
            self._dropped += 1
            logger.warning(f"⚠ Could not queue {event.type} event for delivery")
            return False
        return True

    async def _deliver_loop(self) -> None:
        assert self._queue is not None
        while True:
            event = await self._queue.get()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()

    async def _deliver(self, event: ExecutionEvent) -> None:
        subscriptions = list(self._subscriptions.values())
        handlers = [s.handler for s in subscriptions if self._matches(s, event)]
        for handler in handlers:
            for attempt in range(1, self._max_delivery_attempts + 1):
                try:
                    await handler(event)
                    self._delivered += 1
                    break
                except Exception as e:
                    if attempt == self._max_delivery_attempts:
                        self._failed_deliveries += 1
                        logger.error(
                            f"Handler error for {event.type} after {attempt} attempts: {e}"
                        )
                    else:
                        await asyncio.sleep(self._retry_delay * attempt)

    async def flush(self) -> None:
        """Wait until every queued event has been delivered."""
        if self._queue is None:
            return
        if self._worker is None or self._worker.done():
            self._ensure_worker()
        await self._queue.join()

    async def close(self) -> None:
        """Deliver pending events and stop the worker."""
        await self.flush()
        self._closed = True
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    # === CONVENIENCE PUBLISHERS ===

    def _event(
        self,
        event_type: EventType,
        message: str,
        level: EventLevel = EventLevel.INFO,
        run_id: str | None = None,
        node_id: str | None = None,
        node_type: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> ExecutionEvent:
        context = get_trace_context()
        return ExecutionEvent(
            type=event_type,
            message=message,
            level=level,
            run_id=run_id or context.get("run_id"),
            node_id=node_id,
            node_type=node_type,
            task_id=context.get("task_id"),
            flow_id=context.get("flow_id"),
            payload=mask_payload(payload),
        )

    async def emit_run_started(
        self, run_id: str, task: dict[str, Any], starting_node: str | None = None
    ) -> None:
        await self.publish(
            self._event(
                EventType.RUN_STARTED,
                f"Run started for task type '{task.get('type')}'",
                run_id=run_id,
                payload={"task": task, "startingNode": starting_node},
            )
        )

    async def emit_run_completed(self, run_id: str, result: Any, duration_ms: int) -> None:
        await self.publish(
            self._event(
                EventType.RUN_COMPLETED,
                "Run completed",
                run_id=run_id,
                payload={"result": result, "durationMs": duration_ms},
            )
        )

    async def emit_run_failed(self, run_id: str, error: str, duration_ms: int) -> None:
        await self.publish(
            self._event(
                EventType.RUN_FAILED,
                f"Run failed: {error}",
                level=EventLevel.ERROR,
                run_id=run_id,
                payload={"error": error, "durationMs": duration_ms},
            )
        )

    async def emit_node_started(self, run_id: str, node_id: str, node_type: str) -> None:
        await self.publish(
            self._event(
                EventType.NODE_STARTED,
                f"Executing node {node_id} ({node_type})",
                level=EventLevel.DEBUG,
                run_id=run_id,
                node_id=node_id,
                node_type=node_type,
            )
        )

    async def emit_node_completed(
        self,
        run_id: str,
        node_id: str,
        node_type: str,
        output: Any = None,
        latency_ms: int = 0,
    ) -> None:
        await self.publish(
            self._event(
                EventType.NODE_COMPLETED,
                f"Node {node_id} completed",
                run_id=run_id,
                node_id=node_id,
                node_type=node_type,
                payload={"output": output, "latencyMs": latency_ms},
            )
        )

    async def emit_data_transfer(
        self,
        run_id: str,
        source_id: str,
        source_handle: str,
        target_id: str,
        target_handle: str,
        value: Any,
    ) -> None:
        await self.publish(
            self._event(
                EventType.DATA_TRANSFER,
                f"Passing data from {source_id}.{source_handle} to {target_id}.{target_handle}",
                level=EventLevel.DEBUG,
                run_id=run_id,
                node_id=source_id,
                payload={
                    "sourceHandle": source_handle,
                    "targetNode": target_id,
                    "targetHandle": target_handle,
                    "value": value,
                },
            )
        )

    async def emit_api_request(
        self,
        run_id: str,
        node_id: str,
        method: str,
        url: str,
        headers: dict[str, str],
        params: dict[str, Any] | None = None,
        body: Any = None,
    ) -> None:
        await self.publish(
            self._event(
                EventType.API_REQUEST,
                f"{method} {url}",
                run_id=run_id,
                node_id=node_id,
                node_type="apiCall",
                payload={
                    "method": method,
                    "url": url,
                    "headers": headers,
                    "params": params or {},
                    "body": body,
                },
            )
        )

    async def emit_api_response(
        self, run_id: str, node_id: str, status: int, latency_ms: int, body: Any = None
    ) -> None:
        await self.publish(
            self._event(
                EventType.API_RESPONSE,
                f"API responded {status}",
                run_id=run_id,
                node_id=node_id,
                node_type="apiCall",
                payload={"status": status, "latencyMs": latency_ms, "body": body},
            )
        )

    async def emit_api_error(
        self,
        run_id: str,
        node_id: str,
        error: str,
        status: int | None = None,
        latency_ms: int = 0,
    ) -> None:
        await self.publish(
            self._event(
                EventType.API_ERROR,
                error,
                level=EventLevel.ERROR,
                run_id=run_id,
                node_id=node_id,
                node_type="apiCall",
                payload={"status": status, "latencyMs": latency_ms, "error": error},
            )
        )

    async def emit_ai_completion(
        self,
        run_id: str,
        node_id: str,
        prompt: str | None,
        response: str | None,
        latency_ms: int,
        success: bool,
        model: str | None = None,
        error: str | None = None,
    ) -> None:
        await self.publish(
            self._event(
                EventType.AI_COMPLETION,
                "AI completion succeeded" if success else f"AI completion failed: {error}",
                level=EventLevel.INFO if success else EventLevel.ERROR,
                run_id=run_id,
                node_id=node_id,
                node_type="ai",
                payload={
                    "prompt": prompt,
                    "response": response,
                    "latencyMs": latency_ms,
                    "success": success,
                    "model": model,
                    "error": error,
                },
            )
        )

    async def emit_ocr_completed(
        self,
        run_id: str,
        node_id: str,
        confidence: float,
        language: str,
        processing_time_ms: int,
        text_length: int,
    ) -> None:
        await self.publish(
            self._event(
                EventType.OCR_COMPLETED,
                f"OCR completed ({text_length} chars)",
                run_id=run_id,
                node_id=node_id,
                node_type="ocr",
                payload={
                    "confidence": confidence,
                    "language": language,
                    "processingTimeMs": processing_time_ms,
                    "textLength": text_length,
                },
            )
        )

    async def emit_warning(
        self,
        run_id: str,
        message: str,
        node_id: str | None = None,
        node_type: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        await self.publish(
            self._event(
                EventType.WARNING,
                message,
                level=EventLevel.WARNING,
                run_id=run_id,
                node_id=node_id,
                node_type=node_type,
                payload=payload,
            )
        )

    # === QUERY OPERATIONS ===

    def get_history(
        self,
        event_type: EventType | None = None,
        run_id: str | None = None,
        node_id: str | None = None,
        limit: int = 100,
    ) -> list[ExecutionEvent]:
        """
        Get event history with optional filtering.

        Returns:
            List of matching events (most recent first)
        """
        events = self._event_history[::-1]

        if event_type:
            events = [e for e in events if e.type == event_type]
        if run_id:
            events = [e for e in events if e.run_id == run_id]
        if node_id:
            events = [e for e in events if e.node_id == node_id]

        return events[:limit]

    def get_stats(self) -> dict:
        """Get event bus statistics."""
        type_counts: dict[str, int] = {}
        for event in self._event_history:
            type_counts[event.type.value] = type_counts.get(event.type.value, 0) + 1

        return {
            "total_events": len(self._event_history),
            "subscriptions": len(self._subscriptions),
            "events_by_type": type_counts,
            "queued": self._queue.qsize() if self._queue is not None else 0,
            "delivered": self._delivered,
            "failed_deliveries": self._failed_deliveries,
            "dropped": self._dropped,
        }

    # === WAITING OPERATIONS ===

    async def wait_for(
        self,
        event_type: EventType,
        run_id: str | None = None,
        node_id: str | None = None,
        timeout: float | None = None,
    ) -> ExecutionEvent | None:
        """
        Wait for a specific event to be delivered.

        Returns:
            The event if received, None if timeout
        """
        result: ExecutionEvent | None = None
        event_received = asyncio.Event()

        async def handler(event: ExecutionEvent) -> None:
            nonlocal result
            result = event
            event_received.set()

        sub_id = self.subscribe(
            handler=handler,
            event_types=[event_type],
            filter_run=run_id,
            filter_node=node_id,
        )

        try:
            if timeout:
                try:
                    await asyncio.wait_for(event_received.wait(), timeout=timeout)
                except TimeoutError:
                    return None
            else:
                await event_received.wait()
            return result
        finally:
            self.unsubscribe(sub_id)
