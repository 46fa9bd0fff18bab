"""Tests for the Graph data structure."""

from flowforge.services.workflow.graph import Graph


class TestGraphConstruction:
    """Tests for adding nodes and edges."""

    def test_empty_graph(self) -> None:
        graph = Graph[str]()

        assert graph.node_count == 0
        assert graph.edge_count == 0
        assert len(graph) == 0
        assert graph.nodes == []

    def test_add_node_is_idempotent(self) -> None:
        """Test adding the same node twice keeps a single entry."""
        graph = Graph[str]()
        graph.add_node("a")
        graph.add_node("a")

        assert graph.node_count == 1
        assert "a" in graph

    def test_add_edge_adds_missing_nodes(self) -> None:
        """Test add_edge registers both endpoints."""
        graph = Graph[str]()
        graph.add_edge("a", "b")

        assert graph.nodes == ["a", "b"]
        assert graph.edge_count == 1
        assert graph.has_edge("a", "b")
        assert not graph.has_edge("b", "a")

    def test_parallel_edges_are_kept(self) -> None:
        """Test two connections between the same nodes count as two edges."""
        graph = Graph[str]()
        graph.add_edge("a", "b")
        graph.add_edge("a", "b")

        assert graph.edge_count == 2
        assert graph.get_out_degree("a") == 2
        assert graph.get_in_degree("b") == 2

    def test_insertion_order(self) -> None:
        """Test iteration follows node insertion order."""
        graph = Graph[str]()
        for node in ("c", "a", "b"):
            graph.add_node(node)

        assert list(graph) == ["c", "a", "b"]


class TestGraphQueries:
    """Tests for neighbor lookups."""

    def test_successors_and_predecessors(self) -> None:
        graph = Graph[str]()
        graph.add_edge("a", "b")
        graph.add_edge("a", "c")
        graph.add_edge("c", "b")

        assert graph.get_successors("a") == ["b", "c"]
        assert graph.get_predecessors("b") == ["a", "c"]
        assert graph.get_in_degree("a") == 0
        assert graph.get_out_degree("b") == 0

    def test_unknown_node_has_no_neighbors(self) -> None:
        """Test lookups on a missing node return empty results."""
        graph = Graph[str]()

        assert graph.get_successors("missing") == []
        assert graph.get_predecessors("missing") == []
        assert graph.get_in_degree("missing") == 0
        assert "missing" not in graph

    def test_reversed(self) -> None:
        """Test reversed() flips every edge and keeps isolated nodes."""
        graph = Graph[str]()
        graph.add_edge("a", "b")
        graph.add_node("lonely")

        flipped = graph.reversed()

        assert flipped.has_edge("b", "a")
        assert not flipped.has_edge("a", "b")
        assert "lonely" in flipped
        assert flipped.edge_count == 1
        # Original untouched
        assert graph.has_edge("a", "b")

    def test_repr(self) -> None:
        graph = Graph[str]()
        graph.add_edge("a", "b")

        assert repr(graph) == "Graph(nodes=2, edges=1)"
