"""Structural validation for workflow graphs.

This module provides the WorkflowValidator used by the engine before a run
starts: node/connection shape, dangling references, and cycle detection.
Every problem found is reported at once; validation never raises.
"""

from collections.abc import Mapping
from typing import Any

from flowforge.core.logging import get_logger
from flowforge.schemas.validation import ValidationResult
from flowforge.schemas.workflow import WorkflowDefinition
from flowforge.services.workflow.algorithms import GraphAlgorithms
from flowforge.services.workflow.graph import Graph

logger = get_logger(__name__)


class WorkflowValidator:
    """Stateless structural validator for workflow definitions.

    Accepts either a WorkflowDefinition or the raw JSON mapping, so malformed
    input that pydantic would reject field-by-field is still reported as a
    complete list of errors.

    Example:
        >>> validator = WorkflowValidator()
        >>> result = validator.validate({"nodes": [], "connections": []})
        >>> result.errors
        ['Workflow must have at least one node']
    """

    def validate(self, workflow: WorkflowDefinition | Mapping[str, Any]) -> ValidationResult:
        """Validate a workflow definition.

        Args:
            workflow: The definition to check.

        Returns:
            ValidationResult with every error and warning found.
        """
        if isinstance(workflow, WorkflowDefinition):
            data: Any = workflow.model_dump(by_alias=True)
        else:
            data = workflow

        errors: list[str] = []
        warnings: list[str] = []

        if not isinstance(data, Mapping):
            errors.append("Workflow must be an object")
            return ValidationResult(valid=False, errors=errors)

        nodes = data.get("nodes")
        connections = data.get("connections")

        if not isinstance(nodes, list):
            errors.append("Workflow must have a nodes array")
            nodes = []
        elif not nodes:
            errors.append("Workflow must have at least one node")

        if not isinstance(connections, list):
            errors.append("Workflow must have a connections array")
            connections = []

        node_ids = self._validate_nodes(nodes, errors)
        edges = self._validate_connections(connections, node_ids, errors)

        graph = self._build_graph(node_ids, edges)
        cycle = self._find_cycle(graph)
        if cycle:
            errors.append(
                f"Workflow contains circular dependencies: {' -> '.join(cycle)}"
            )

        for node_id in GraphAlgorithms.find_dangling_nodes(graph):
            warnings.append(f"Node {node_id} has no connections")

        if errors:
            logger.debug(
                "Workflow validation failed",
                extra={"context": {"workflow_id": data.get("id"), "errors": errors}},
            )

        return ValidationResult(valid=not errors, errors=errors, warnings=warnings)

    # ==========================================================================
    # Private Helper Methods
    # ==========================================================================

    def _validate_nodes(self, nodes: list[Any], errors: list[str]) -> list[str]:
        """Check node shape and uniqueness; return the usable node ids."""
        node_ids: list[str] = []
        seen: set[str] = set()

        for index, node in enumerate(nodes):
            if not isinstance(node, Mapping):
                errors.append(f"Node at index {index} must be an object")
                continue

            node_id = node.get("id")
            if not isinstance(node_id, str) or not node_id:
                errors.append(f"Node at index {index} must have a string id")
                continue

            if not isinstance(node.get("type"), str) or not node.get("type"):
                errors.append(f"Node {node_id} must have a string type")

            config = node.get("config")
            if config is not None and not isinstance(config, Mapping):
                errors.append(f"Node {node_id} config must be an object")

            if node_id in seen:
                errors.append(f"Duplicate node id: {node_id}")
                continue

            seen.add(node_id)
            node_ids.append(node_id)

        return node_ids

    def _validate_connections(
        self,
        connections: list[Any],
        node_ids: list[str],
        errors: list[str],
    ) -> list[tuple[str, str]]:
        """Check connection endpoints; return the (source, target) pairs that resolve."""
        known = set(node_ids)
        edges: list[tuple[str, str]] = []

        for index, connection in enumerate(connections):
            if not isinstance(connection, Mapping):
                errors.append(f"Connection at index {index} must be an object")
                continue

            source = connection.get("source")
            target = connection.get("target")
            if not isinstance(source, str) or not isinstance(target, str):
                errors.append(f"Connection at index {index} must have a source and a target")
                continue

            label = f"Connection {index} ({source} -> {target})"
            valid = True
            if source not in known:
                errors.append(f"{label} references unknown source node: {source}")
                valid = False
            if target not in known:
                errors.append(f"{label} references unknown target node: {target}")
                valid = False

            if valid:
                edges.append((source, target))

        return edges

    def _build_graph(self, node_ids: list[str], edges: list[tuple[str, str]]) -> Graph[str]:
        """Build the forward (data flow) graph."""
        graph = Graph[str]()
        for node_id in node_ids:
            graph.add_node(node_id)
        for source, target in edges:
            graph.add_edge(source, target)
        return graph

    def _find_cycle(self, graph: Graph[str]) -> list[str] | None:
        """Find a cycle in the dependency graph (target depends on source).

        The path is returned in data-flow order so it reads the way the
        connections were drawn.
        """
        dependencies = graph.reversed()

        cycle = GraphAlgorithms.detect_cycle(dependencies)
        if cycle is None:
            return None
        return list(reversed(cycle))


__all__ = ["WorkflowValidator"]
