"""Conftest for engine tests: graph builders and an in-memory run store."""

from typing import Any, Dict, List, Optional

import pytest

from workflow.engine.graph import Edge, Node, WorkflowGraph
from workflow.engine.run_store import InMemoryRunStore


def _node(
    node_id: str,
    node_type: str = "prompt",
    action: str = "input",
    params: Optional[Dict[str, Any]] = None,
    label: Optional[str] = None,
) -> Node:
    return Node(
        id=node_id,
        type=node_type,
        action=action,
        label=label or f"Node {node_id}",
        params=params or {},
    )


def _chain(*node_ids: str) -> List[Edge]:
    return [
        Edge(id=f"e{i}", source=src, target=dst)
        for i, (src, dst) in enumerate(zip(node_ids, node_ids[1:]))
    ]


def _graph(
    nodes: List[Node], edges: Optional[List[Edge]] = None, workflow_id: str = "wf_test"
) -> WorkflowGraph:
    return WorkflowGraph(workflow_id=workflow_id, nodes=nodes, edges=edges or [])


@pytest.fixture
def make_node():
    """Node factory; defaults to a prompt node."""
    return _node


@pytest.fixture
def chain():
    """Edges linking the given node ids in sequence."""
    return _chain


@pytest.fixture
def make_graph():
    return _graph


@pytest.fixture
def store() -> InMemoryRunStore:
    return InMemoryRunStore()
