"""Node Catalog.

Maps node type names to BaseNode subclasses and constructs node instances
for a run.
"""

from typing import Any

from flowforge.core.logging import get_logger
from flowforge.services.workflow.nodes.base import BaseNode, NodeMetadata
from flowforge.services.workflow.nodes.errors import NodeNotRegisteredError

logger = get_logger(__name__)


class NodeCatalog:
    """Registry for node type lookup and instantiation.

    Example:
        catalog = NodeCatalog()
        node = catalog.create_node("IfElse", {"condition": "exists"}, node_id="2")
        result = await node.execute(context)
    """

    def __init__(self, register_defaults: bool = True) -> None:
        """Initialize catalog, optionally with the built-in node types."""
        self._nodes: dict[str, type[BaseNode]] = {}
        if register_defaults:
            self._register_defaults()

    def _register_defaults(self) -> None:
        """Register the five built-in node types."""
        # Import here to avoid circular dependencies
        from flowforge.services.workflow.nodes.console_output import ConsoleOutputNode
        from flowforge.services.workflow.nodes.http_request import HttpRequestNode
        from flowforge.services.workflow.nodes.if_else import IfElseNode
        from flowforge.services.workflow.nodes.manual_trigger import ManualTriggerNode
        from flowforge.services.workflow.nodes.set_variable import SetVariableNode

        for node_class in (
            ManualTriggerNode,
            ConsoleOutputNode,
            SetVariableNode,
            IfElseNode,
            HttpRequestNode,
        ):
            self.register(node_class.node_type, node_class)

    def register(self, node_type: str, node_class: type[BaseNode]) -> None:
        """Register a node class for a node type.

        Args:
            node_type: The type name used in workflow definitions
            node_class: The BaseNode subclass to register

        Raises:
            TypeError: If node_class is not a BaseNode subclass

        Note:
            An existing registration for node_type is overwritten.
        """
        if not (isinstance(node_class, type) and issubclass(node_class, BaseNode)):
            raise TypeError(f"{node_class!r} is not a BaseNode subclass")
        if node_type in self._nodes:
            logger.debug(f"Replacing node type registration: {node_type}")
        self._nodes[node_type] = node_class

    def unregister(self, node_type: str) -> bool:
        """Remove a node type. Returns False if it was not registered."""
        return self._nodes.pop(node_type, None) is not None

    def get(self, node_type: str) -> type[BaseNode]:
        """Get node class for node type.

        Raises:
            NodeNotRegisteredError: If no node registered for node_type
        """
        if node_type not in self._nodes:
            raise NodeNotRegisteredError(node_type)
        return self._nodes[node_type]

    def get_node_metadata(self, node_type: str) -> NodeMetadata | None:
        """Describe a node type, or None if it is not registered."""
        node_class = self._nodes.get(node_type)
        if node_class is None:
            return None
        return node_class.metadata()

    def create_node(
        self,
        node_type: str,
        config: dict[str, Any] | None = None,
        node_id: str | None = None,
    ) -> BaseNode:
        """Create node instance with configuration.

        Raises:
            NodeNotRegisteredError: If no node registered for node_type
            NodeConfigurationError: If config is invalid for the node type
        """
        node_class = self.get(node_type)
        return node_class(config=config, node_id=node_id)

    def list_registered(self) -> list[str]:
        """List all registered node types."""
        return list(self._nodes.keys())

    def get_nodes_by_category(self) -> dict[str, list[str]]:
        """Group registered node types by category."""
        grouped: dict[str, list[str]] = {}
        for node_type, node_class in self._nodes.items():
            grouped.setdefault(str(node_class.category), []).append(node_type)
        return grouped

    def __contains__(self, node_type: object) -> bool:
        return node_type in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)


# Module-level singleton for convenience
_catalog: NodeCatalog | None = None


def get_catalog() -> NodeCatalog:
    """Get the global node catalog singleton.

    Returns:
        The global NodeCatalog instance (creates on first call)
    """
    global _catalog
    if _catalog is None:
        _catalog = NodeCatalog()
    return _catalog


__all__ = ["NodeCatalog", "get_catalog"]
