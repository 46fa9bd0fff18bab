"""Graph algorithms for workflow validation.

This module provides the graph checks the validator needs:
- Cycle detection using DFS with an on-stack marker
- Dangling (isolated) node detection

Time Complexity:
- Cycle detection: O(V + E)
- Dangling nodes: O(V)

Space Complexity: O(V + E) for all algorithms.
"""

from __future__ import annotations

from collections.abc import Hashable
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from flowforge.services.workflow.graph import Graph

NodeId = TypeVar("NodeId", bound=Hashable)


class GraphAlgorithms(Generic[NodeId]):
    """Collection of graph algorithms for workflow validation.

    All algorithms operate on the Graph data structure and are stateless.

    Example:
        >>> graph = Graph[str]()
        >>> graph.add_edge("a", "b")
        >>> graph.add_edge("b", "a")
        >>> GraphAlgorithms.detect_cycle(graph)
        ['a', 'b', 'a']
    """

    @staticmethod
    def detect_cycle(graph: Graph[NodeId]) -> list[NodeId] | None:
        """Detect a cycle using DFS with path tracking.

        Every node is used as a DFS root so cycles in disconnected
        subgraphs are found too. The walk keeps an explicit stack, so very
        deep chains do not hit the interpreter recursion limit.

        Args:
            graph: The graph to check for cycles.

        Returns:
            List of node IDs forming the cycle (first node repeated last) if
            found, None otherwise. A self-loop yields ``[a, a]``.

        Time Complexity: O(V + E)
        Space Complexity: O(V)
        """
        visited: set[NodeId] = set()
        on_stack: set[NodeId] = set()

        for root in graph:
            if root in visited:
                continue

            path: list[NodeId] = [root]
            # (node, index of next successor to inspect)
            stack: list[tuple[NodeId, int]] = [(root, 0)]
            visited.add(root)
            on_stack.add(root)

            while stack:
                node, index = stack[-1]
                successors = graph.get_successors(node)

                if index >= len(successors):
                    stack.pop()
                    path.pop()
                    on_stack.discard(node)
                    continue

                stack[-1] = (node, index + 1)
                neighbor = successors[index]

                if neighbor in on_stack:
                    cycle_start = path.index(neighbor)
                    return [*path[cycle_start:], neighbor]

                if neighbor not in visited:
                    visited.add(neighbor)
                    on_stack.add(neighbor)
                    path.append(neighbor)
                    stack.append((neighbor, 0))

        return None

    @staticmethod
    def find_dangling_nodes(graph: Graph[NodeId]) -> list[NodeId]:
        """Find nodes with no incoming or outgoing edges.

        Single-node workflows (trigger only) are not considered dangling.

        Returns:
            Isolated node IDs in graph insertion order.
        """
        if graph.node_count <= 1:
            return []

        return [
            node
            for node in graph
            if graph.get_in_degree(node) == 0 and graph.get_out_degree(node) == 0
        ]


__all__ = ["GraphAlgorithms"]
