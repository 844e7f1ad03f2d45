"""Runtime: telemetry bus, sinks, masking and the HTTP surface."""

from flowengine.runtime.event_bus import (
    EventBus,
    EventLevel,
    EventType,
    ExecutionEvent,
)
from flowengine.runtime.masking import mask_payload, mask_value
from flowengine.runtime.sinks import JsonlEventSink, LoggingSink

__all__ = [
    "EventBus",
    "EventLevel",
    "EventType",
    "ExecutionEvent",
    "JsonlEventSink",
    "LoggingSink",
    "mask_payload",
    "mask_value",
]
