"""Telemetry sinks: subscribers that forward execution events somewhere durable.

Usage::

    bus = EventBus()
    LoggingSink().attach(bus)
    JsonlEventSink(Path("~/.flowengine/runs").expanduser()).attach(bus)

Sinks are plain async callables, so any coroutine function can be
subscribed the same way.
"""

import asyncio
import json
import logging
import threading
from pathlib import Path

from flowengine.runtime.event_bus import EventBus, EventLevel, ExecutionEvent

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    EventLevel.DEBUG: logging.DEBUG,
    EventLevel.INFO: logging.INFO,
    EventLevel.WARNING: logging.WARNING,
    EventLevel.ERROR: logging.ERROR,
}


class LoggingSink:
    """Writes every event as a log record with structured ``extra`` fields."""

    def __init__(self, logger_name: str = "flowengine.events"):
        self._logger = logging.getLogger(logger_name)

    def attach(self, bus: EventBus) -> str:
        return bus.subscribe(handler=self)

    async def __call__(self, event: ExecutionEvent) -> None:
        payload = event.payload or {}
        self._logger.log(
            _LOG_LEVELS.get(event.level, logging.INFO),
            event.message,
            extra={
                "event": event.type.value,
                "node_id": event.node_id,
                "node_type": event.node_type,
                "latency_ms": payload.get("latencyMs"),
                "status": payload.get("status"),
                "payload": payload or None,
            },
        )


class JsonlEventSink:
    """
    Appends events to one JSONL file per run.

    Directory structure:
    {base_path}/
      {run_id}.jsonl
    """

    def __init__(self, base_path: str | Path):
        self.base_path = Path(base_path)
        self._lock = threading.Lock()

    def attach(self, bus: EventBus) -> str:
        return bus.subscribe(handler=self)

    def path_for(self, run_id: str | None) -> Path:
        name = run_id or "unscoped"
        if "/" in name or "\\" in name or name.startswith("."):
            raise ValueError(f"Invalid run id for log file: '{name}'")
        return self.base_path / f"{name}.jsonl"

    async def __call__(self, event: ExecutionEvent) -> None:
        path = self.path_for(event.run_id)
        line = json.dumps(event.to_dict(), ensure_ascii=False, default=str) + "\n"

        def _append() -> None:
            with self._lock:
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(path, "a", encoding="utf-8") as f:
                    f.write(line)

        await asyncio.to_thread(_append)

    def read_run(self, run_id: str) -> list[dict]:
        """Read a run's events back, skipping corrupt lines."""
        path = self.path_for(run_id)
        if not path.exists():
            return []
        events = []
        with open(path, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.warning(f"Skipping corrupt line in {path}")
        return events
