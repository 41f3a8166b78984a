"""Background trigger envelope.

A run is requested by sending ``{name, data}`` where ``name`` selects the
durable workflow and ``data`` carries
``{workflowId, workflow, config, transcribedText?}``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

EXECUTE_REQUESTED = "workflow/execute.requested"

# Event name -> Temporal workflow type
EVENT_WORKFLOWS: Dict[str, str] = {
    EXECUTE_REQUESTED: "WorkflowRunWorkflow",
}


def execute_requested(
    workflow_id: str,
    workflow: Dict[str, Any],
    config: Optional[Dict[str, Any]] = None,
    transcribed_text: Optional[str] = None,
) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "workflowId": workflow_id,
        "workflow": workflow,
        "config": dict(config or {}),
    }
    if transcribed_text:
        data["transcribedText"] = transcribed_text
    return {"name": EXECUTE_REQUESTED, "data": data}
