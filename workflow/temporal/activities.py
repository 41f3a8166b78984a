"""Temporal Activities for durable workflow runs.

Each activity is one named step of a run. They share a DurableCoordinator
backed by the SQL run store; store writes are announced to the API process
through the internal events endpoint.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from temporalio import activity
from temporalio.exceptions import ApplicationError

from ..engine.context import ExecutionContext
from ..engine.coordinator import DurableCoordinator
from ..engine.dispatcher import NodeExecutor
from ..engine.errors import NodeExecutionFailed, WorkflowEngineError
from ..engine.graph import ExecutionLayer, WorkflowGraph
from ..integrations.tool_gateway import build_gateway_adapters
from ..logging_config import get_worker_logger, run_logger
from ..sse import push_sse_event

logger = get_worker_logger()

_coordinator: Optional[DurableCoordinator] = None


def get_coordinator() -> DurableCoordinator:
    global _coordinator
    if _coordinator is None:
        from app.database import get_session_ctx
        from app.run_store import SqlRunStore

        _coordinator = DurableCoordinator(
            store=SqlRunStore(session_factory=get_session_ctx, notifier=push_sse_event),
            executor=NodeExecutor(build_gateway_adapters()),
        )
    return _coordinator


def _non_retryable(e: WorkflowEngineError) -> ApplicationError:
    return ApplicationError(str(e), type=type(e).__name__, non_retryable=True)


@activity.defn(name="start-run")
async def start_run_activity(params: Dict[str, Any]) -> None:
    """Create the run record if missing and mark it running.

    Args:
        params: Dict with keys run_id, workflow, config, transcribed_text
    """
    await get_coordinator().start_run(
        params["run_id"],
        params.get("workflow") or {},
        params.get("config") or {},
        params.get("transcribed_text"),
    )


@activity.defn(name="initialize-context")
async def initialize_context_activity(params: Dict[str, Any]) -> Dict[str, Any]:
    return get_coordinator().initialize(params.get("config")).to_dict()


@activity.defn(name="analyze-workflow")
async def analyze_workflow_activity(params: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Parse and layer the graph; malformed graphs fail without retry."""
    run_id = params["run_id"]
    try:
        graph = WorkflowGraph.from_dict(params.get("workflow") or {}, workflow_id=run_id)
        layers = get_coordinator().plan(graph)
    except WorkflowEngineError as e:
        run_logger(logger, run_id).warning(f"Workflow rejected: {e}")
        raise _non_retryable(e) from e
    run_logger(logger, run_id).info(f"Workflow has {len(layers)} execution layer(s)")
    return [layer.to_dict() for layer in layers]


@activity.defn(name="execute-layer")
async def execute_layer_activity(params: Dict[str, Any]) -> Dict[str, Any]:
    """Run one layer and return the merged context.

    Args:
        params: Dict with keys run_id, layer (ExecutionLayer dict), context
            (ExecutionContext dict)
    """
    run_id = params["run_id"]
    layer = ExecutionLayer.from_dict(params["layer"])
    context = ExecutionContext.from_dict(params.get("context") or {})
    try:
        context = await get_coordinator().execute_layer(run_id, layer, context)
    except NodeExecutionFailed as e:
        raise _non_retryable(e) from e
    return context.to_dict()


@activity.defn(name="finalize-workflow")
async def finalize_run_activity(params: Dict[str, Any]) -> None:
    await get_coordinator().finalize(params["run_id"])


@activity.defn(name="mark-failed")
async def mark_run_failed_activity(params: Dict[str, Any]) -> None:
    await get_coordinator().mark_failed(params["run_id"], params.get("error") or "Unknown error")


ALL_ACTIVITIES = [
    start_run_activity,
    initialize_context_activity,
    analyze_workflow_activity,
    execute_layer_activity,
    finalize_run_activity,
    mark_run_failed_activity,
]
