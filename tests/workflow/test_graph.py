"""Unit tests for the workflow graph model and layer analysis

Tests cover:
- Node / Edge / WorkflowGraph construction and wire format
- Greedy layering (fan-out/fan-in, determinism, dependency order)
- Cycle and dangling-edge handling in analyze_layers vs plan_execution
- validate_workflow issues
- Parallel helpers
"""

import random

import pytest

from workflow.engine.errors import StructuralError, ValidationError
from workflow.engine.graph import (
    Edge,
    ExecutionLayer,
    Node,
    WorkflowGraph,
    analyze_layers,
    find_dangling_edges,
    get_parallel_nodes,
    has_parallel_branches,
    plan_execution,
    validate_workflow,
)
from workflow.engine.node_types import NodeType


def layer_ids(layers):
    return [layer.node_ids for layer in layers]


class TestNodeModel:

    def test_type_string_is_coerced(self):
        n = Node(id="a", type="notion", action="fetch", label="Fetch")
        assert n.type is NodeType.NOTION

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            Node(id="a", type="fax", action="send", label="Fax")
        assert exc_info.value.node_id == "a"

    @pytest.mark.parametrize("field", ["id", "type", "action", "label"])
    def test_from_dict_requires_fields(self, field):
        data = {"id": "a", "type": "llm", "action": "summarize", "label": "Summarize"}
        data[field] = ""
        with pytest.raises(ValidationError):
            Node.from_dict(data)

    def test_edge_requires_endpoints(self):
        with pytest.raises(ValidationError):
            Edge(id="e1", source="a", target="")

    def test_duplicate_node_ids_rejected(self, make_node):
        with pytest.raises(ValidationError, match="duplicate node IDs"):
            WorkflowGraph(workflow_id="wf", nodes=[make_node("a"), make_node("a")])

    def test_graph_from_dict_requires_nodes_array(self):
        with pytest.raises(ValidationError, match="missing nodes array"):
            WorkflowGraph.from_dict({"edges": []})

    def test_graph_round_trips_wire_shape(self):
        data = {
            "workflowId": "wf_1",
            "nodes": [
                {"id": "a", "type": "notion", "action": "fetch", "label": "Fetch", "params": {"pageId": "p1"}},
                {"id": "b", "type": "llm", "action": "summarize", "label": "Summarize", "params": {}},
            ],
            "edges": [{"id": "e1", "source": "a", "target": "b"}],
        }
        g = WorkflowGraph.from_dict(data)
        assert g.workflow_id == "wf_1"
        assert g.nodes[0].params == {"pageId": "p1"}
        assert g.to_dict() == data

    def test_explicit_workflow_id_wins(self):
        g = WorkflowGraph.from_dict({"workflowId": "from-body", "nodes": []}, workflow_id="run-1")
        assert g.workflow_id == "run-1"


class TestAnalyzeLayers:

    def test_fan_out_fan_in(self, make_node):
        nodes = [make_node(str(i)) for i in range(4)]
        edges = [
            Edge("e1", "0", "1"),
            Edge("e2", "0", "2"),
            Edge("e3", "1", "3"),
            Edge("e4", "2", "3"),
        ]
        layers = analyze_layers(nodes, edges)
        assert layer_ids(layers) == [["0"], ["1", "2"], ["3"]]
        assert [layer.index for layer in layers] == [0, 1, 2]
        assert layers[1].upstream_dependency_ids == ["0"]
        assert layers[2].upstream_dependency_ids == ["1", "2"]

    def test_no_edges_is_one_layer(self, make_node):
        nodes = [make_node("a"), make_node("b"), make_node("c")]
        assert layer_ids(analyze_layers(nodes, [])) == [["a", "b", "c"]]

    def test_empty_graph(self):
        assert analyze_layers([], []) == []

    def test_intra_layer_order_follows_node_array(self, make_node):
        # "z" is discovered through an edge first but listed last
        nodes = [make_node("root"), make_node("y"), make_node("x"), make_node("z")]
        edges = [Edge("e1", "root", "z"), Edge("e2", "root", "x"), Edge("e3", "root", "y")]
        assert layer_ids(analyze_layers(nodes, edges)) == [["root"], ["y", "x", "z"]]

    def test_deterministic(self, make_node):
        nodes = [make_node(f"n{i}") for i in range(8)]
        edges = [
            Edge("e1", "n0", "n3"), Edge("e2", "n1", "n3"), Edge("e3", "n3", "n5"),
            Edge("e4", "n2", "n6"), Edge("e5", "n5", "n7"), Edge("e6", "n6", "n7"),
        ]
        first = layer_ids(analyze_layers(nodes, edges))
        for _ in range(5):
            assert layer_ids(analyze_layers(list(nodes), list(edges))) == first

    def test_random_dags_cover_every_node_once_after_dependencies(self, make_node):
        rng = random.Random(1234)
        for _ in range(25):
            count = rng.randint(1, 12)
            nodes = [make_node(f"n{i}") for i in range(count)]
            # edges only point forward in a hidden order -> acyclic
            order = list(range(count))
            rng.shuffle(order)
            edges = []
            for a in range(count):
                for b in range(a + 1, count):
                    if rng.random() < 0.3:
                        edges.append(Edge(f"e{a}-{b}", f"n{order[a]}", f"n{order[b]}"))

            layers = analyze_layers(nodes, edges)
            scheduled = [nid for layer in layers for nid in layer.node_ids]
            assert sorted(scheduled) == sorted(n.id for n in nodes)
            assert len(scheduled) == len(set(scheduled))

            layer_of = {nid: layer.index for layer in layers for nid in layer.node_ids}
            for edge in edges:
                assert layer_of[edge.source] < layer_of[edge.target]

    def test_cycle_leaves_nodes_unscheduled(self, make_node):
        nodes = [make_node("a"), make_node("b"), make_node("c")]
        edges = [Edge("e1", "a", "b"), Edge("e2", "b", "c"), Edge("e3", "c", "b")]
        assert layer_ids(analyze_layers(nodes, edges)) == [["a"]]

    def test_dangling_source_blocks_target(self, make_node):
        nodes = [make_node("a"), make_node("b")]
        edges = [Edge("e1", "ghost", "b")]
        assert layer_ids(analyze_layers(nodes, edges)) == [["a"]]


class TestPlanExecution:

    def test_plan_matches_analysis_for_valid_graph(self, make_node, chain, make_graph):
        g = make_graph([make_node("a"), make_node("b")], chain("a", "b"))
        assert layer_ids(plan_execution(g)) == [["a"], ["b"]]

    def test_cycle_raises_structural_error(self, make_node, make_graph):
        g = make_graph(
            [make_node("a"), make_node("b"), make_node("c")],
            [Edge("e1", "b", "c"), Edge("e2", "c", "b")],
        )
        with pytest.raises(StructuralError, match="circular dependency") as exc_info:
            plan_execution(g)
        assert exc_info.value.node_ids == ["b", "c"]

    def test_dangling_edge_raises_before_layering(self, make_node, make_graph):
        g = make_graph([make_node("a")], [Edge("e9", "a", "missing")])
        assert [e.id for e in find_dangling_edges(g)] == ["e9"]
        with pytest.raises(StructuralError, match="missing node") as exc_info:
            plan_execution(g)
        assert "missing" in exc_info.value.node_ids


class TestExecutionLayerWire:

    def test_layer_dict_round_trip(self, make_node):
        layer = ExecutionLayer(
            index=2,
            nodes=[make_node("a", "llm", "summarize", {"prompt": "Be brief"})],
            upstream_dependency_ids=["x"],
        )
        data = layer.to_dict()
        assert data["upstreamDependencyIds"] == ["x"]
        restored = ExecutionLayer.from_dict(data)
        assert restored == layer


class TestParallelHelpers:

    def test_has_parallel_branches(self, make_node):
        nodes = [make_node("a"), make_node("b"), make_node("c")]
        assert has_parallel_branches(nodes, [Edge("e1", "a", "b"), Edge("e2", "a", "c")])
        assert not has_parallel_branches(nodes, [Edge("e1", "a", "b"), Edge("e2", "b", "c")])

    def test_get_parallel_nodes(self, make_node):
        nodes = [make_node("a"), make_node("b"), make_node("c")]
        edges = [Edge("e1", "a", "b"), Edge("e2", "a", "c")]
        assert get_parallel_nodes("b", nodes, edges) == ["c"]
        assert get_parallel_nodes("a", nodes, edges) == []
        assert get_parallel_nodes("nope", nodes, edges) == []


class TestValidateWorkflow:

    def test_valid_workflow(self, make_node, chain, make_graph):
        g = make_graph(
            [make_node("a", "notion", "fetch"), make_node("b", "llm", "summarize")],
            chain("a", "b"),
        )
        result = validate_workflow(g)
        assert result.valid
        assert result.errors == []

    def test_invalid_action(self, make_node, make_graph):
        g = make_graph([make_node("a", "email", "fax")])
        result = validate_workflow(g)
        assert not result.valid
        assert [e.code for e in result.errors] == ["INVALID_ACTION"]
        assert result.errors[0].node_ids == ["a"]

    def test_dangling_and_cycle(self, make_node, make_graph):
        g = make_graph(
            [make_node("a"), make_node("b"), make_node("c")],
            [Edge("e1", "a", "ghost"), Edge("e2", "b", "c"), Edge("e3", "c", "b")],
        )
        codes = {e.code for e in validate_workflow(g).errors}
        assert codes == {"DANGLING_EDGE", "CIRCULAR_DEPENDENCY"}

    def test_disconnected_node_is_warning(self, make_node, make_graph):
        g = make_graph([make_node("a"), make_node("b"), make_node("lonely")], [Edge("e1", "a", "b")])
        result = validate_workflow(g)
        assert result.valid
        assert [w.code for w in result.warnings] == ["DISCONNECTED_NODE"]
        assert result.to_dict()["warnings"][0]["node_ids"] == ["lonely"]
