"""Workflow execution endpoints: live stream and background runs."""

from __future__ import annotations

import asyncio
import secrets
import time
from typing import AsyncGenerator, Dict, Set

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from workflow.engine.coordinator import DurableCoordinator, StreamingCoordinator
from workflow.engine.dispatcher import NodeExecutor
from workflow.engine.errors import ValidationError
from workflow.engine.events import format_sse
from workflow.engine.graph import WorkflowGraph, validate_workflow
from workflow.engine.run_store import RunStatus
from workflow.logging_config import get_api_logger
from workflow.temporal.events import execute_requested

from ..dependencies import get_node_executor, get_run_store
from ..models.schemas import ExecuteBackgroundRequest, ExecuteBackgroundResponse, ExecuteRequest
from ..run_store import SqlRunStore
from ..temporal_adapter import send_event

logger = get_api_logger()

router = APIRouter(prefix="/api", tags=["execution"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# Strong references to in-process background runs
_background_tasks: Set[asyncio.Task] = set()


def generate_run_id() -> str:
    return f"wf_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


def _parse_graph(data: Dict, workflow_id: str) -> WorkflowGraph:
    try:
        return WorkflowGraph.from_dict(data, workflow_id=workflow_id)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@router.post("/execute")
async def execute_workflow_stream(
    payload: ExecuteRequest,
    executor: NodeExecutor = Depends(get_node_executor),
):
    """Run a workflow and stream its events as SSE ``data:`` messages."""
    run_id = payload.workflowId or generate_run_id()
    graph = _parse_graph(
        {
            "nodes": [n.model_dump() for n in payload.nodes],
            "edges": [e.model_dump() for e in payload.edges],
        },
        run_id,
    )
    logger.info(f"Streaming run {run_id}: {len(graph.nodes)} node(s)")

    async def event_stream() -> AsyncGenerator[str, None]:
        async for event in StreamingCoordinator(executor).stream(graph, payload.config):
            yield format_sse(event)

    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)


def _log_task_result(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"In-process background run crashed: {exc!r}")


@router.post("/execute-background", response_model=ExecuteBackgroundResponse)
async def execute_workflow_background(
    payload: ExecuteBackgroundRequest,
    store: SqlRunStore = Depends(get_run_store),
    executor: NodeExecutor = Depends(get_node_executor),
):
    """Persist a pending run and hand it to the durable host.

    Falls back to an in-process task when Temporal is unreachable.
    """
    run_id = payload.workflowId or generate_run_id()
    workflow = payload.workflow.model_dump()
    workflow["workflowId"] = workflow.get("workflowId") or run_id

    graph = _parse_graph(workflow, run_id)
    result = validate_workflow(graph)
    if not result.valid:
        raise HTTPException(
            status_code=422,
            detail={
                "message": "Workflow validation failed",
                "errors": [e.to_dict() for e in result.errors],
            },
        )

    if await store.get(run_id) is not None:
        raise HTTPException(status_code=409, detail=f"Run {run_id} already exists")
    await store.create(run_id, workflow, payload.config, payload.transcribedText)

    envelope = execute_requested(run_id, workflow, payload.config, payload.transcribedText)
    try:
        await send_event(envelope)
    except RuntimeError as exc:
        logger.warning(f"Run {run_id}: {exc}; executing in-process")
        coordinator = DurableCoordinator(store, executor)
        task = asyncio.create_task(
            coordinator.run(run_id, workflow, payload.config, payload.transcribedText)
        )
        _background_tasks.add(task)
        task.add_done_callback(_log_task_result)
        return ExecuteBackgroundResponse(
            workflowId=run_id,
            mode="in_process",
            message="Workflow execution started in background",
        )
    except Exception as exc:
        await store.update_status(run_id, RunStatus.FAILED, error=f"Failed to start workflow: {exc}")
        raise HTTPException(
            status_code=503, detail=f"Failed to start workflow: {exc}",
        ) from exc

    return ExecuteBackgroundResponse(
        workflowId=run_id,
        mode="temporal",
        message="Workflow execution requested",
    )
