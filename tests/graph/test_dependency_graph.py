"""
Tests for the DependencyGraph arena.

These tests verify:
1. Node/edge insertion and reference checks
2. Cascading node removal with adjacency re-indexing
3. Neighbour and edge queries in every direction
4. Breadth-first shortest paths
5. Score clamping on nodes and edges
"""

from __future__ import annotations

import pytest

from remedy_engine.exceptions import DuplicateNodeError, InvalidReferenceError, NodeNotFoundError
from remedy_engine.graph.dependency_graph import DependencyGraph
from remedy_engine.graph.models import Direction, GraphEdge, GraphNode


def build(edges: list[tuple[str, str]], extra_nodes: tuple[str, ...] = ()) -> DependencyGraph:
    graph = DependencyGraph()
    for node_id in dict.fromkeys([n for edge in edges for n in edge] + list(extra_nodes)):
        graph.add_node(GraphNode(id=node_id))
    for source, target in edges:
        graph.add_edge(GraphEdge(source_id=source, target_id=target))
    return graph


class TestGraphMutation:
    """Tests for adding and removing nodes and edges."""

    def test_add_node(self) -> None:
        """Added nodes are retrievable and counted."""
        graph = DependencyGraph()
        graph.add_node(GraphNode(id="api"))

        assert len(graph) == 1
        assert "api" in graph
        assert graph.get_node("api").id == "api"

    def test_duplicate_node_rejected(self) -> None:
        """Adding the same id twice raises DuplicateNodeError."""
        graph = DependencyGraph()
        graph.add_node(GraphNode(id="api"))

        with pytest.raises(DuplicateNodeError):
            graph.add_node(GraphNode(id="api"))

    def test_edge_requires_both_endpoints(self) -> None:
        """An edge to a missing node raises InvalidReferenceError."""
        graph = DependencyGraph()
        graph.add_node(GraphNode(id="api"))

        with pytest.raises(InvalidReferenceError) as exc_info:
            graph.add_edge(GraphEdge(source_id="api", target_id="db"))
        assert exc_info.value.missing == "db"

        with pytest.raises(InvalidReferenceError) as exc_info:
            graph.add_edge(GraphEdge(source_id="cache", target_id="api"))
        assert exc_info.value.missing == "cache"
        assert graph.edges == []

    def test_none_arguments_rejected(self) -> None:
        """None nodes and edges are programmer errors."""
        graph = DependencyGraph()
        with pytest.raises(ValueError):
            graph.add_node(None)  # type: ignore[arg-type]
        with pytest.raises(ValueError):
            graph.add_edge(None)  # type: ignore[arg-type]

    def test_remove_node_cascades_edges(self) -> None:
        """Removing a node drops its edges and keeps adjacency consistent."""
        graph = build([("A", "B"), ("B", "C"), ("A", "C"), ("C", "D")])

        graph.remove_node("B")

        assert "B" not in graph
        assert [(e.source_id, e.target_id) for e in graph.edges] == [("A", "C"), ("C", "D")]
        assert [n.id for n in graph.get_neighbors("A")] == ["C"]
        assert [n.id for n in graph.get_neighbors("D", Direction.INCOMING)] == ["C"]
        for node in graph.nodes:
            for index in node.outgoing:
                assert graph.edges[index].source_id == node.id
            for index in node.incoming:
                assert graph.edges[index].target_id == node.id

    def test_remove_unknown_node(self) -> None:
        """Removing an unknown id raises NodeNotFoundError."""
        with pytest.raises(NodeNotFoundError):
            DependencyGraph().remove_node("ghost")


class TestGraphQueries:
    """Tests for neighbour, edge and path queries."""

    def test_neighbors_by_direction(self) -> None:
        """Neighbours follow the requested direction."""
        graph = build([("A", "B"), ("C", "A")])

        assert [n.id for n in graph.get_neighbors("A", Direction.OUTGOING)] == ["B"]
        assert [n.id for n in graph.get_neighbors("A", Direction.INCOMING)] == ["C"]
        assert {n.id for n in graph.get_neighbors("A", Direction.BOTH)} == {"B", "C"}

    def test_edges_by_direction(self) -> None:
        """Edge queries return incident edges only."""
        graph = build([("A", "B"), ("C", "A"), ("B", "C")])

        assert len(graph.get_edges("A", Direction.BOTH)) == 2
        assert graph.get_edges("A", Direction.INCOMING)[0].source_id == "C"

    def test_unknown_ids_raise(self) -> None:
        """Every query on an unknown id raises NodeNotFoundError."""
        graph = build([("A", "B")])

        with pytest.raises(NodeNotFoundError):
            graph.get_node("Z")
        with pytest.raises(NodeNotFoundError):
            graph.get_neighbors("Z")
        with pytest.raises(NodeNotFoundError):
            graph.get_edges("Z")
        with pytest.raises(NodeNotFoundError):
            graph.get_path("A", "Z")

    def test_shortest_path_through_branch(self) -> None:
        """A->B, B->C, B->D: the path from A to D is [A, B, D]."""
        graph = build([("A", "B"), ("B", "C"), ("B", "D")])

        assert graph.get_path("A", "D") == ["A", "B", "D"]

    @pytest.mark.parametrize("length", [1, 2, 5, 9])
    def test_path_of_length_k_has_k_plus_one_nodes(self, length: int) -> None:
        """A chain of k edges yields a path of k+1 nodes."""
        chain = [(f"n{i}", f"n{i + 1}") for i in range(length)]
        graph = build(chain)

        path = graph.get_path("n0", f"n{length}")

        assert len(path) == length + 1
        assert path[0] == "n0"
        assert path[-1] == f"n{length}"

    def test_shortest_path_prefers_fewer_hops(self) -> None:
        """BFS returns the path with the fewest hops."""
        graph = build([("A", "B"), ("B", "C"), ("C", "D"), ("A", "D")])

        assert graph.get_path("A", "D") == ["A", "D"]

    def test_disconnected_pair_returns_empty(self) -> None:
        """Unreachable targets give an empty path."""
        graph = build([("A", "B"), ("C", "D")])

        assert graph.get_path("A", "D") == []
        assert graph.get_path("B", "A") == []

    def test_path_to_self(self) -> None:
        """The path from a node to itself is the node alone."""
        graph = build([("A", "B")])

        assert graph.get_path("A", "A") == ["A"]

    def test_path_survives_cycles(self) -> None:
        """Cycles do not trap the search."""
        graph = build([("A", "B"), ("B", "A"), ("B", "C")])

        assert graph.get_path("A", "C") == ["A", "B", "C"]

    def test_to_dict(self) -> None:
        """Serialization lists nodes and edges without adjacency indices."""
        data = build([("A", "B")]).to_dict()

        assert [n["id"] for n in data["nodes"]] == ["A", "B"]
        assert "outgoing" not in data["nodes"][0]
        assert data["edges"][0]["source_id"] == "A"


class TestScoreClamping:
    """Tests for clamping probabilities, health and weights."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(1.7, 1.0), (-0.3, 0.0), (0.42, 0.42), ("0.5", 0.5), ("bogus", 0.0)],
    )
    def test_error_probability_clamped(self, raw: object, expected: float) -> None:
        """Node error probability is always within [0, 1]."""
        assert GraphNode(id="n", error_probability=raw).error_probability == expected

    def test_assignment_is_clamped(self) -> None:
        """Updating a node's probability clamps too."""
        node = GraphNode(id="n")
        node.error_probability = 3.0
        node.health_score = -1.0

        assert node.error_probability == 1.0
        assert node.health_score == 0.0

    @pytest.mark.parametrize(("raw", "expected"), [(2.0, 1.0), (-1.0, 0.0), (None, 1.0)])
    def test_edge_weight_clamped(self, raw: object, expected: float) -> None:
        """Edge weight is always within [0, 1]."""
        assert GraphEdge(source_id="a", target_id="b", weight=raw).weight == expected
