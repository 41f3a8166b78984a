"""Workflow definition endpoints: validation, layer planning, node catalog."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, HTTPException

from workflow.engine.errors import StructuralError
from workflow.engine.graph import has_parallel_branches, plan_execution, validate_workflow
from workflow.nodes import list_node_types

from ..models.schemas import LayerSchema, NodeTypeSchema, WorkflowPlanResponse, WorkflowSchema
from .execution import _parse_graph

router = APIRouter(prefix="/api", tags=["workflows"])


@router.post("/workflows/validate", response_model=WorkflowPlanResponse)
async def validate_and_plan(payload: WorkflowSchema):
    """Validate a workflow and return the layers it would execute in."""
    graph = _parse_graph(payload.model_dump(), payload.workflowId or "preview")
    result = validate_workflow(graph)
    if not result.valid:
        raise HTTPException(status_code=422, detail=result.to_dict())

    try:
        layers = plan_execution(graph)
    except StructuralError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": str(e), "nodeIds": e.node_ids},
        ) from e

    return WorkflowPlanResponse(
        valid=True,
        warnings=[w.to_dict() for w in result.warnings],
        layers=[
            LayerSchema(
                index=layer.index,
                nodeIds=layer.node_ids,
                upstreamDependencyIds=list(layer.upstream_dependency_ids),
            )
            for layer in layers
        ],
        hasParallelBranches=has_parallel_branches(graph.nodes, graph.edges),
    )


@router.get("/node-types", response_model=List[NodeTypeSchema])
async def get_node_types():
    """Registered node types with their allowed actions."""
    return [definition.to_dict() for definition in list_node_types()]
