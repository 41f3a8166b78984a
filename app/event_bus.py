"""Event bus for run update push.

Architecture:
  - In-process run stores publish through push_event()
  - The Temporal worker POSTs to /api/internal/events/{run_id}, which
    delegates to EventBus.push()
  - GET /api/workflow-history/{run_id}/events subscribes via
    EventBus.subscribe(), an async generator of SSE strings

Event Envelope:
  {"event": "<run_updated | run_log | run_finished>", "data": {...}}
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import APIRouter
from pydantic import BaseModel

from workflow.engine.run_store import now_ms
from workflow.logging_config import get_sse_logger

logger = get_sse_logger()

router = APIRouter()

# Buffer limits: prevent unbounded memory growth from runs nobody watches
BUFFER_MAX_EVENTS = 200
BUFFER_MAX_AGE_SECS = 600

# Events that tell the SSE generator to close the connection
STOP_EVENTS = frozenset({"run_finished"})


class EventBus:
    """Per-run queues for connected subscribers, plus a bounded buffer for
    events published before anyone subscribed."""

    def __init__(
        self,
        buffer_max_events: int = BUFFER_MAX_EVENTS,
        buffer_max_age_secs: int = BUFFER_MAX_AGE_SECS,
    ):
        self._streams: Dict[str, asyncio.Queue] = {}
        self._buffers: Dict[str, dict] = {}
        self._buffer_max_events = buffer_max_events
        self._buffer_max_age_secs = buffer_max_age_secs
        self._lock = asyncio.Lock()

    def push(self, run_id: str, event_type: str, data: dict) -> None:
        """Deliver an event to the run's subscriber, or buffer it.

        Synchronous on purpose: there is no await point between the lookup
        and the enqueue.
        """
        data = dict(data)
        data.setdefault("timestamp", now_ms())

        event = {"event": event_type, "data": data}
        queue = self._streams.get(run_id)
        if queue:
            queue.put_nowait(event)
            logger.debug(f"Event sent: {event_type} for {run_id}")
        else:
            self._buffer_event(run_id, event, event_type)

    async def subscribe(
        self,
        run_id: str,
        stop_events: Optional[frozenset] = None,
        keepalive_interval: float = 30.0,
    ) -> AsyncGenerator[str, None]:
        """Yield SSE strings for a run, buffered events first.

        Args:
            run_id: Run to follow
            stop_events: Event types that end the stream (default STOP_EVENTS)
            keepalive_interval: Seconds between keepalive comments
        """
        if stop_events is None:
            stop_events = STOP_EVENTS

        logger.info(f"Client subscribed: {run_id}")
        queue: asyncio.Queue = asyncio.Queue()

        async with self._lock:
            self._streams[run_id] = queue
            buf = self._buffers.pop(run_id, None)

        buffered = buf["events"] if buf else []
        if buffered:
            logger.info(f"Flushing {len(buffered)} buffered events for {run_id}")
        for event in buffered:
            yield format_sse(event)
            if event.get("event") in stop_events:
                async with self._lock:
                    self._streams.pop(run_id, None)
                return

        try:
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=keepalive_interval)
                    if event is None:
                        break
                    yield format_sse(event)
                    if event.get("event") in stop_events:
                        break
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
        finally:
            async with self._lock:
                self._streams.pop(run_id, None)
                self._buffers.pop(run_id, None)

    def close(self, run_id: str) -> None:
        """End the run's subscription, if any."""
        queue = self._streams.get(run_id)
        if queue:
            queue.put_nowait(None)

    def _buffer_event(self, run_id: str, event: dict, event_type: str) -> None:
        if run_id not in self._buffers:
            self._cleanup_stale_buffers()
            self._buffers[run_id] = {"events": [], "created_at": time.monotonic()}

        buf = self._buffers[run_id]
        if len(buf["events"]) < self._buffer_max_events:
            buf["events"].append(event)
        else:
            logger.warning(
                f"Buffer full ({self._buffer_max_events}), dropping: {event_type} for {run_id}"
            )

    def _cleanup_stale_buffers(self) -> None:
        now = time.monotonic()
        stale = [
            rid for rid, buf in self._buffers.items()
            if now - buf["created_at"] > self._buffer_max_age_secs
        ]
        for rid in stale:
            removed = self._buffers.pop(rid, None)
            if removed:
                logger.info(
                    f"Cleaned up stale buffer for {rid} ({len(removed['events'])} events)"
                )


def format_sse(event: dict) -> str:
    return f"event: {event['event']}\ndata: {json.dumps(event['data'], ensure_ascii=False)}\n\n"


# --- Singleton ---

_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    global _bus
    if _bus is None:
        _bus = EventBus()
    return _bus


def push_event(run_id: str, event_type: str, data: dict) -> None:
    get_event_bus().push(run_id, event_type, data)


async def publish_run_event(run_id: str, event_type: str, data: Dict[str, Any]) -> None:
    """Async notifier for run stores living in the API process."""
    push_event(run_id, event_type, data)


async def subscribe_events(
    run_id: str, stop_events: Optional[frozenset] = None,
) -> AsyncGenerator[str, None]:
    async for event_str in get_event_bus().subscribe(run_id, stop_events=stop_events):
        yield event_str


# --- Internal API for cross-process push (Temporal Worker → FastAPI) ---


class InternalEventRequest(BaseModel):
    event_type: str
    data: dict


@router.post("/api/internal/events/{run_id}")
async def push_event_endpoint(run_id: str, payload: InternalEventRequest):
    logger.debug(f"Received event via API: {payload.event_type} for {run_id}")
    get_event_bus().push(run_id, payload.event_type, payload.data)
    return {"status": "ok", "run_id": run_id}
