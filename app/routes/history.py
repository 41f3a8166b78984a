"""Run history endpoints: polling and push-based updates."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from workflow.engine.run_store import RunRecord

from ..dependencies import get_run_store
from ..event_bus import subscribe_events
from ..models.schemas import RunHistoryResponse, RunLookupRequest, RunResponse
from ..run_store import SqlRunStore
from .execution import SSE_HEADERS

router = APIRouter(prefix="/api/workflow-history", tags=["history"])


async def _require_run(store: SqlRunStore, run_id: str) -> RunRecord:
    run = await store.get(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return run


@router.get("", response_model=RunHistoryResponse)
async def list_runs(store: SqlRunStore = Depends(get_run_store)):
    """All runs, most recent first."""
    runs = await store.get_all()
    return RunHistoryResponse(count=len(runs), history=[r.to_dict() for r in runs])


@router.post("", response_model=RunResponse)
async def lookup_run(payload: RunLookupRequest, store: SqlRunStore = Depends(get_run_store)):
    """Fetch one run by ``{workflowId}`` body."""
    run = await _require_run(store, payload.workflowId)
    return RunResponse(run=run.to_dict())


@router.get("/{run_id}", response_model=RunResponse)
async def get_run(run_id: str, store: SqlRunStore = Depends(get_run_store)):
    run = await _require_run(store, run_id)
    return RunResponse(run=run.to_dict())


@router.get("/{run_id}/events")
async def stream_run_events(run_id: str, store: SqlRunStore = Depends(get_run_store)):
    """SSE stream of run_updated / run_log events until the run finishes."""
    run = await _require_run(store, run_id)
    if run.status.is_terminal:
        raise HTTPException(status_code=409, detail=f"Run already {run.status.value}")
    return StreamingResponse(
        subscribe_events(run_id), media_type="text/event-stream", headers=SSE_HEADERS,
    )
