"""Engine exception hierarchy.

StructuralError and ValidationError are raised before a run dispatches any
node. AdapterError and ContentError are raised inside node handlers and are
normalised into failed NodeResults by the dispatcher.
"""

from __future__ import annotations

from typing import List, Optional


class WorkflowEngineError(Exception):
    """Base class for all engine errors."""


class StructuralError(WorkflowEngineError):
    """Graph contains a cycle or an edge referencing a missing node."""

    def __init__(self, message: str, node_ids: Optional[List[str]] = None):
        self.node_ids = list(node_ids or [])
        super().__init__(message)


class ValidationError(WorkflowEngineError):
    """A node is malformed or uses a type/action pair outside the capability table."""

    def __init__(self, message: str, node_id: Optional[str] = None):
        self.node_id = node_id
        super().__init__(message)


class AdapterError(WorkflowEngineError):
    """An external tool call failed (auth, not-found, rate-limit, network)."""

    def __init__(self, message: str, adapter: Optional[str] = None):
        self.adapter = adapter
        super().__init__(message)


class ContentError(WorkflowEngineError):
    """Required context (destination, input content, upload) is absent."""


class NodeExecutionFailed(WorkflowEngineError):
    """A node in the current layer returned a failed result; the run aborts."""

    def __init__(self, node_id: str, error: str):
        self.node_id = node_id
        self.error = error
        super().__init__(error)
