"""Pydantic schemas for the execution and history API.

Field names follow the JSON wire format (camelCase) shared with the editor.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class NodeSchema(BaseModel):
    id: str
    type: str
    action: str
    label: str
    params: Dict[str, Any] = Field(default_factory=dict)


class EdgeSchema(BaseModel):
    id: str
    source: str
    target: str


class WorkflowSchema(BaseModel):
    workflowId: Optional[str] = None
    nodes: List[NodeSchema]
    edges: List[EdgeSchema] = Field(default_factory=list)


class ExecuteRequest(BaseModel):
    """Body of POST /api/execute."""
    workflowId: Optional[str] = None
    nodes: List[NodeSchema]
    edges: List[EdgeSchema] = Field(default_factory=list)
    config: Dict[str, Any] = Field(default_factory=dict)


class ExecuteBackgroundRequest(BaseModel):
    """Body of POST /api/execute-background."""
    workflowId: Optional[str] = Field(
        None, description="Run id to use; generated when omitted",
    )
    workflow: WorkflowSchema
    config: Dict[str, Any] = Field(default_factory=dict)
    transcribedText: Optional[str] = None


class ExecuteBackgroundResponse(BaseModel):
    success: bool = True
    workflowId: str
    mode: Literal["temporal", "in_process"]
    message: str


class LogEntrySchema(BaseModel):
    nodeId: str
    type: Literal["progress", "success", "error", "info"]
    message: str
    timestamp: int
    metrics: Optional[Dict[str, Any]] = None


class RunSchema(BaseModel):
    id: str
    workflow: Dict[str, Any]
    config: Dict[str, Any] = Field(default_factory=dict)
    status: Literal["pending", "running", "completed", "failed"]
    logs: List[LogEntrySchema] = Field(default_factory=list)
    startTime: int
    endTime: Optional[int] = None
    error: Optional[str] = None
    transcribedText: Optional[str] = None


class RunHistoryResponse(BaseModel):
    success: bool = True
    count: int
    history: List[RunSchema]


class RunResponse(BaseModel):
    success: bool = True
    run: RunSchema


class RunLookupRequest(BaseModel):
    workflowId: str


class LayerSchema(BaseModel):
    index: int
    nodeIds: List[str]
    upstreamDependencyIds: List[str]


class WorkflowPlanResponse(BaseModel):
    valid: bool
    warnings: List[Dict[str, Any]] = Field(default_factory=list)
    layers: List[LayerSchema]
    hasParallelBranches: bool


class NodeTypeSchema(BaseModel):
    node_type: str
    display_name: str
    description: str
    category: str
    actions: Optional[List[str]] = None
    input_schema: Dict[str, Any] = Field(default_factory=dict)
