"""Temporal Workflow Definitions"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError, ApplicationError

with workflow.unsafe.imports_passed_through():
    from .activities import (
        analyze_workflow_activity,
        execute_layer_activity,
        finalize_run_activity,
        initialize_context_activity,
        mark_run_failed_activity,
        start_run_activity,
    )
    from ..config import TASK_QUEUE
    from ..settings import RUN_BOOKKEEPING_TIMEOUT_SECONDS, RUN_LAYER_TIMEOUT_MINUTES

# Run-level retries are disabled; a failed step fails the run
NO_RETRY = RetryPolicy(maximum_attempts=1)


def _error_message(err: ActivityError) -> str:
    cause = err.cause
    if isinstance(cause, ApplicationError) and cause.message:
        return cause.message
    return str(cause or err)


@workflow.defn
class WorkflowRunWorkflow:
    """Durable run of a workflow graph.

    Every step is a separately named activity: start-run,
    initialize-context, analyze-workflow, execute-layer-<i>,
    finalize-workflow, and mark-failed on error. The execution context
    travels between layer activities as a plain dict.
    """

    def __init__(self) -> None:
        self._status = "pending"
        self._layers_total = 0
        self._layers_done = 0
        self._result: Dict[str, Any] = {}

    async def _step(self, activity_fn, params: dict, activity_id: str, timeout: timedelta):
        return await workflow.execute_activity(
            activity_fn,
            params,
            activity_id=activity_id,
            start_to_close_timeout=timeout,
            retry_policy=NO_RETRY,
        )

    @workflow.run
    async def run(self, params: dict) -> dict:
        """Execute a requested run.

        Args:
            params: ``data`` of the execute-requested envelope:
                workflowId, workflow, config, transcribedText
        """
        run_id = params.get("workflowId") or workflow.info().workflow_id
        bookkeeping = timedelta(seconds=RUN_BOOKKEEPING_TIMEOUT_SECONDS)

        await self._step(start_run_activity, {
            "run_id": run_id,
            "workflow": params.get("workflow") or {},
            "config": params.get("config") or {},
            "transcribed_text": params.get("transcribedText"),
        }, "start-run", bookkeeping)
        self._status = "running"

        try:
            context = await self._step(
                initialize_context_activity,
                {"config": params.get("config") or {}},
                "initialize-context",
                bookkeeping,
            )
            layers = await self._step(
                analyze_workflow_activity,
                {"run_id": run_id, "workflow": params.get("workflow") or {}},
                "analyze-workflow",
                bookkeeping,
            )
            self._layers_total = len(layers)
            for i, layer in enumerate(layers):
                context = await self._step(
                    execute_layer_activity,
                    {"run_id": run_id, "layer": layer, "context": context},
                    f"execute-layer-{i}",
                    timedelta(minutes=RUN_LAYER_TIMEOUT_MINUTES),
                )
                self._layers_done = i + 1
        except ActivityError as e:
            error = _error_message(e)
            self._status = "failed"
            await self._step(
                mark_run_failed_activity,
                {"run_id": run_id, "error": error},
                "mark-failed",
                bookkeeping,
            )
            raise ApplicationError(error, non_retryable=True) from e

        await self._step(finalize_run_activity, {"run_id": run_id}, "finalize-workflow", bookkeeping)
        self._status = "completed"
        self._result = {
            "success": True,
            "workflowId": run_id,
            "message": "Workflow executed successfully",
        }
        return self._result

    @workflow.query
    def get_status(self) -> dict:
        return {
            "status": self._status,
            "layersTotal": self._layers_total,
            "layersDone": self._layers_done,
        }

    @workflow.query
    def get_result(self) -> dict:
        return self._result


__all__ = ["WorkflowRunWorkflow", "TASK_QUEUE"]
