"""Workflow execution engine: graph analysis, context merging, dispatch and coordination.

Only the pure building blocks are re-exported here. The dispatcher and the
coordinators depend on the handler registry in ``workflow.nodes``; import
them from ``workflow.engine.dispatcher`` / ``workflow.engine.coordinator``.
"""

from .context import ExecutionContext, RunConfig, UploadedFile, initialize_context, merge_layer
from .errors import (
    AdapterError,
    ContentError,
    NodeExecutionFailed,
    StructuralError,
    ValidationError,
    WorkflowEngineError,
)
from .events import StreamEvent, format_sse
from .graph import (
    Edge,
    ExecutionLayer,
    Node,
    WorkflowGraph,
    analyze_layers,
    get_parallel_nodes,
    has_parallel_branches,
    plan_execution,
    validate_workflow,
)
from .node_types import CAPABILITIES, NodeCategory, NodeType
from .run_store import InMemoryRunStore, LogEntry, LogKind, RunRecord, RunStatus, RunStore

__all__ = [
    "AdapterError",
    "CAPABILITIES",
    "ContentError",
    "Edge",
    "ExecutionContext",
    "ExecutionLayer",
    "InMemoryRunStore",
    "LogEntry",
    "LogKind",
    "Node",
    "NodeCategory",
    "NodeExecutionFailed",
    "NodeType",
    "RunConfig",
    "RunRecord",
    "RunStatus",
    "RunStore",
    "StreamEvent",
    "StructuralError",
    "UploadedFile",
    "ValidationError",
    "WorkflowEngineError",
    "WorkflowGraph",
    "analyze_layers",
    "format_sse",
    "get_parallel_nodes",
    "has_parallel_branches",
    "initialize_context",
    "merge_layer",
    "plan_execution",
    "validate_workflow",
]
