"""Run update push from the Temporal worker to the API process.

The worker has no access to the API's in-memory event bus, so run store
changes are POSTed to ``/api/internal/events/{run_id}`` and re-published
there to subscribers of the run's event stream.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

import httpx

from .logging_config import get_worker_logger
from .settings import SSE_HTTP_MAX_CONNECTIONS, SSE_HTTP_MAX_KEEPALIVE, SSE_HTTP_TIMEOUT

# API base URL for pushing events (Worker → FastAPI)
# Use 127.0.0.1 instead of localhost to avoid IPv6 timeout issues
API_BASE_URL = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")

logger = get_worker_logger()

# Shared client; a run pushes one event per log entry
_http_client: Optional[httpx.AsyncClient] = None


async def _get_http_client() -> httpx.AsyncClient:
    global _http_client
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(
            timeout=SSE_HTTP_TIMEOUT,
            limits=httpx.Limits(
                max_connections=SSE_HTTP_MAX_CONNECTIONS,
                max_keepalive_connections=SSE_HTTP_MAX_KEEPALIVE,
            ),
        )
    return _http_client


async def push_sse_event(run_id: str, event_type: str, data: Dict[str, Any]) -> None:
    """Push a run event to the API server.

    Delivery is best effort: failures are logged, never raised, so the
    run itself is unaffected.

    Args:
        run_id: The workflow run ID
        event_type: run_updated or run_log
        data: Event payload
    """
    if not run_id:
        logger.warning(f"No run_id, skipping event: {event_type}")
        return

    url = f"{API_BASE_URL}/api/internal/events/{run_id}"
    payload = {"event_type": event_type, "data": data}
    logger.debug(f"Pushing event: {event_type} to {url}")

    try:
        client = await _get_http_client()
        resp = await client.post(url, json=payload)
        if resp.status_code >= 400:
            logger.warning(f"Event push {event_type} for {run_id} returned {resp.status_code}")
    except httpx.HTTPError as e:
        logger.error(f"Failed to push event {event_type} for {run_id}: {e}")


async def close_http_client() -> None:
    global _http_client
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
    _http_client = None
