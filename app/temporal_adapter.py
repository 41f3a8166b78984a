"""Temporal Client Adapter

Manages the Temporal client lifecycle and turns trigger envelopes into
durable workflow starts.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from temporalio.client import Client

from workflow.config import TASK_QUEUE as TEMPORAL_TASK_QUEUE, TEMPORAL_ADDRESS
from workflow.settings import RUN_WORKFLOW_MIN_TIMEOUT_MINUTES, RUN_WORKFLOW_PER_LAYER_MINUTES
from workflow.temporal.events import EVENT_WORKFLOWS

logger = logging.getLogger(__name__)

# Singleton client instance (initialized via lifespan)
_client: Optional[Client] = None
_client_lock = asyncio.Lock()


async def init_temporal_client() -> Optional[Client]:
    """Initialize and return the Temporal client singleton.

    Returns None if Temporal is not available (graceful degradation).
    """
    global _client
    async with _client_lock:
        if _client is None:
            try:
                _client = await Client.connect(TEMPORAL_ADDRESS)
                logger.info(f"Temporal connected: {TEMPORAL_ADDRESS}")
            except Exception as e:
                logger.warning(
                    f"Temporal not connected ({TEMPORAL_ADDRESS}): {e}; "
                    "background runs will execute in-process"
                )
                _client = None
    return _client


async def close_temporal_client() -> None:
    global _client
    # The SDK has no explicit close; drop the reference
    _client = None


async def get_client() -> Client:
    """Get the Temporal client, connecting if needed.

    Raises RuntimeError if Temporal is not reachable.
    """
    if _client is None:
        await init_temporal_client()
    if _client is None:
        raise RuntimeError("Temporal is not connected; start the Temporal service first")
    return _client


def run_timeout(workflow: Dict[str, Any]) -> timedelta:
    """Whole-run timeout; every node is assumed to be its own layer."""
    node_count = len(workflow.get("nodes") or [])
    return timedelta(
        minutes=max(RUN_WORKFLOW_MIN_TIMEOUT_MINUTES, node_count * RUN_WORKFLOW_PER_LAYER_MINUTES)
    )


async def send_event(envelope: Dict[str, Any]) -> str:
    """Start the durable workflow registered for ``envelope['name']``.

    Args:
        envelope: ``{name, data}``; ``data.workflowId`` becomes the Temporal
            workflow id and the run id

    Returns:
        The Temporal workflow id

    Raises:
        ValueError: Unknown event name or missing workflowId
        RuntimeError: Temporal is not connected
    """
    name = envelope.get("name")
    workflow_type = EVENT_WORKFLOWS.get(name or "")
    if workflow_type is None:
        raise ValueError(f"No workflow registered for event '{name}'")
    data = envelope.get("data") or {}
    workflow_id = data.get("workflowId")
    if not workflow_id:
        raise ValueError("Event data is missing workflowId")

    client = await get_client()
    await client.start_workflow(
        workflow_type,
        data,
        id=workflow_id,
        task_queue=TEMPORAL_TASK_QUEUE,
        execution_timeout=run_timeout(data.get("workflow") or {}),
    )
    logger.info(f"Sent {name} -> {workflow_type} ({workflow_id})")
    return workflow_id
