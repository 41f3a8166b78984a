"""Workflow graph model and layer analysis.

Key Components:
- Node / Edge / WorkflowGraph: immutable run snapshot of the declarative graph
- ExecutionLayer: a set of nodes that may run concurrently
- analyze_layers: greedy topological layering (pure, deterministic)
- plan_execution: analyze_layers + structural checks, used by the coordinators
- validate_workflow: structured issues for API callers
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from .errors import StructuralError, ValidationError
from .node_types import NodeType, is_action_allowed, parse_node_type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Node:
    """A single workflow step.

    Attributes:
        id: Unique node identifier within the graph
        type: Capability variant (closed NodeType enum)
        action: Operation name, checked against the capability table
        params: Node-embedded parameters
        label: Human-readable name used in logs and events
    """

    id: str
    type: NodeType
    action: str
    label: str
    params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.id:
            raise ValidationError("node id cannot be empty")
        if not isinstance(self.type, NodeType):
            node_type = parse_node_type(str(self.type))
            if node_type is None:
                raise ValidationError(
                    f"Node {self.id} has unknown type '{self.type}'", node_id=self.id,
                )
            object.__setattr__(self, "type", node_type)
        if not self.action:
            raise ValidationError(f"Node {self.id} missing action", node_id=self.id)
        if not self.label:
            raise ValidationError(f"Node {self.id} missing label", node_id=self.id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        for key in ("id", "type", "action", "label"):
            if not data.get(key):
                raise ValidationError(
                    f"Node {data.get('id') or '?'} missing {key}", node_id=data.get("id"),
                )
        return cls(
            id=str(data["id"]),
            type=data["type"],
            action=str(data["action"]),
            label=str(data["label"]),
            params=dict(data.get("params") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "action": self.action,
            "params": dict(self.params),
            "label": self.label,
        }


@dataclass(frozen=True)
class Edge:
    """Directed dependency: ``target`` runs after ``source``."""

    id: str
    source: str
    target: str

    def __post_init__(self):
        if not self.id:
            raise ValidationError("edge id cannot be empty")
        if not self.source:
            raise ValidationError(f"edge {self.id}: source node cannot be empty")
        if not self.target:
            raise ValidationError(f"edge {self.id}: target node cannot be empty")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Edge":
        return cls(
            id=str(data.get("id") or ""),
            source=str(data.get("source") or ""),
            target=str(data.get("target") or ""),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "source": self.source, "target": self.target}


@dataclass(frozen=True)
class WorkflowGraph:
    """Immutable snapshot of a workflow handed to a coordinator."""

    workflow_id: str
    nodes: List[Node]
    edges: List[Edge] = field(default_factory=list)

    def __post_init__(self):
        seen: Set[str] = set()
        duplicates = []
        for node in self.nodes:
            if node.id in seen:
                duplicates.append(node.id)
            seen.add(node.id)
        if duplicates:
            raise ValidationError(f"duplicate node IDs found: {sorted(set(duplicates))}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any], workflow_id: Optional[str] = None) -> "WorkflowGraph":
        """Build a graph from the JSON wire shape ``{workflowId, nodes, edges}``."""
        nodes = data.get("nodes")
        if not isinstance(nodes, list):
            raise ValidationError("Invalid workflow: missing nodes array")
        return cls(
            workflow_id=workflow_id or str(data.get("workflowId") or ""),
            nodes=[Node.from_dict(n) for n in nodes],
            edges=[Edge.from_dict(e) for e in data.get("edges") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflowId": self.workflow_id,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


@dataclass(frozen=True)
class ExecutionLayer:
    """Nodes eligible together; no ordering guarantee among them at runtime."""

    index: int
    nodes: List[Node]
    upstream_dependency_ids: List[str] = field(default_factory=list)

    @property
    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "nodes": [n.to_dict() for n in self.nodes],
            "upstreamDependencyIds": list(self.upstream_dependency_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutionLayer":
        return cls(
            index=int(data["index"]),
            nodes=[Node.from_dict(n) for n in data.get("nodes", [])],
            upstream_dependency_ids=list(data.get("upstreamDependencyIds", [])),
        )


def analyze_layers(nodes: List[Node], edges: List[Edge]) -> List[ExecutionLayer]:
    """Partition nodes into parallel execution layers.

    Each pass admits every unprocessed node whose incoming edges all start at
    processed nodes; the whole pass becomes one layer, in original node order.
    A pass that admits nothing means a cycle or an edge from a missing node:
    analysis stops and the remaining nodes are left out.

    Args:
        nodes: All workflow nodes
        edges: Dependency edges

    Returns:
        Layers in execution order
    """
    incoming: Dict[str, List[str]] = {node.id: [] for node in nodes}
    for edge in edges:
        incoming.setdefault(edge.target, []).append(edge.source)

    layers: List[ExecutionLayer] = []
    processed: Set[str] = set()

    while True:
        remaining = [node for node in nodes if node.id not in processed]
        if not remaining:
            break

        layer_nodes: List[Node] = []
        dependencies: List[str] = []
        for node in remaining:
            sources = incoming.get(node.id, [])
            if all(source in processed for source in sources):
                layer_nodes.append(node)
                for source in sources:
                    if source not in dependencies:
                        dependencies.append(source)

        if not layer_nodes:
            logger.warning(
                "Circular dependency or invalid edge detected; "
                f"{len(remaining)} node(s) left unscheduled: {[n.id for n in remaining]}"
            )
            break

        layers.append(ExecutionLayer(
            index=len(layers),
            nodes=layer_nodes,
            upstream_dependency_ids=dependencies,
        ))
        processed.update(node.id for node in layer_nodes)

    logger.info(f"Parallel execution plan: {len(layers)} layer(s)")
    for layer in layers:
        logger.debug(
            f"  Layer {layer.index}: {len(layer.nodes)} node(s) - "
            f"{', '.join(n.label or n.id for n in layer.nodes)}"
        )
    return layers


def find_dangling_edges(graph: WorkflowGraph) -> List[Edge]:
    """Edges whose source or target is not a node of the graph."""
    node_ids = {node.id for node in graph.nodes}
    return [
        edge for edge in graph.edges
        if edge.source not in node_ids or edge.target not in node_ids
    ]


def plan_execution(graph: WorkflowGraph) -> List[ExecutionLayer]:
    """Layer the graph, refusing structurally broken input.

    Raises:
        StructuralError: the graph has a dangling edge, or a cycle leaves
            nodes unscheduled
    """
    dangling = find_dangling_edges(graph)
    if dangling:
        refs = ", ".join(f"{e.id} ({e.source} -> {e.target})" for e in dangling)
        raise StructuralError(
            f"Invalid workflow structure: edge references a missing node: {refs}",
            node_ids=[e.source for e in dangling] + [e.target for e in dangling],
        )

    layers = analyze_layers(graph.nodes, graph.edges)
    scheduled = {node.id for layer in layers for node in layer.nodes}
    unscheduled = [node.id for node in graph.nodes if node.id not in scheduled]
    if unscheduled:
        raise StructuralError(
            f"Invalid workflow structure: circular dependency among {unscheduled}",
            node_ids=unscheduled,
        )
    return layers


def has_parallel_branches(nodes: List[Node], edges: List[Edge]) -> bool:
    """True if any layer holds more than one node."""
    return any(len(layer.nodes) > 1 for layer in analyze_layers(nodes, edges))


def get_parallel_nodes(node_id: str, nodes: List[Node], edges: List[Edge]) -> List[str]:
    """IDs of the other nodes sharing ``node_id``'s layer."""
    for layer in analyze_layers(nodes, edges):
        if node_id in layer.node_ids:
            return [nid for nid in layer.node_ids if nid != node_id]
    return []


class ValidationIssue:
    """Workflow validation finding.

    Attributes:
        code: Issue code (e.g. CIRCULAR_DEPENDENCY)
        message: Human-readable message
        severity: "error" or "warning"
        node_ids: Affected node IDs
        context: Additional structured detail
    """

    def __init__(
        self,
        code: str,
        message: str,
        severity: str,
        node_ids: List[str],
        context: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.severity = severity
        self.node_ids = node_ids
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "node_ids": self.node_ids,
            "context": self.context,
        }


class ValidationResult:
    """Outcome of validate_workflow; ``valid`` is False when any error exists."""

    def __init__(self, errors: List[ValidationIssue], warnings: List[ValidationIssue]):
        self.errors = errors
        self.warnings = warnings

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


def validate_workflow(graph: WorkflowGraph) -> ValidationResult:
    """Check the capability table and the graph structure.

    Errors: INVALID_ACTION, DANGLING_EDGE, CIRCULAR_DEPENDENCY.
    Warnings: DISCONNECTED_NODE (a node with no edges in a multi-node graph).
    """
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []

    for node in graph.nodes:
        if not is_action_allowed(node.type, node.action):
            errors.append(ValidationIssue(
                code="INVALID_ACTION",
                message=f"Node {node.id}: action '{node.action}' is not allowed for type '{node.type.value}'",
                severity="error",
                node_ids=[node.id],
                context={"node_type": node.type.value, "action": node.action},
            ))

    dangling = find_dangling_edges(graph)
    for edge in dangling:
        errors.append(ValidationIssue(
            code="DANGLING_EDGE",
            message=f"Edge {edge.id} references a missing node ({edge.source} -> {edge.target})",
            severity="error",
            node_ids=[edge.source, edge.target],
            context={"edge_id": edge.id},
        ))

    # dangling edges are reported above; leave them out of the cycle check
    layers = analyze_layers(graph.nodes, [e for e in graph.edges if e not in dangling])
    scheduled = {node.id for layer in layers for node in layer.nodes}
    unscheduled = [node.id for node in graph.nodes if node.id not in scheduled]
    if unscheduled:
        errors.append(ValidationIssue(
            code="CIRCULAR_DEPENDENCY",
            message=f"Circular dependency detected among nodes {unscheduled}",
            severity="error",
            node_ids=unscheduled,
        ))

    if len(graph.nodes) > 1:
        connected = {e.source for e in graph.edges} | {e.target for e in graph.edges}
        for node in graph.nodes:
            if node.id not in connected:
                warnings.append(ValidationIssue(
                    code="DISCONNECTED_NODE",
                    message=f"Node {node.id} is not connected to the workflow",
                    severity="warning",
                    node_ids=[node.id],
                ))

    return ValidationResult(errors=errors, warnings=warnings)
