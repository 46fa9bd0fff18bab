"""Node Error Classes.

Errors raised by node implementations and the node catalog. The engine
wraps anything a node raises from execute() in NodeExecutionError, keeping
the original as ``original_error``.
"""

from dataclasses import dataclass, field
from typing import Any


class NodeError(Exception):
    """Base exception for node errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@dataclass(eq=False)
class NodeConfigurationError(NodeError):
    """Raised when a node's configuration is invalid.

    Attributes:
        node_type: Type name of the node
        message: Configuration error description
        errors: Field-level validation errors, if any
    """

    node_type: str
    message: str
    errors: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        Exception.__init__(self, str(self))

    def __str__(self) -> str:
        return f"Configuration error in {self.node_type}: {self.message}"


class NodeNotRegisteredError(NodeError):
    """Raised when a requested node type is not in the catalog."""

    def __init__(self, node_type: str):
        super().__init__(f"Unknown node type: {node_type}")
        self.node_type = node_type

    def __str__(self) -> str:
        return self.message


@dataclass(eq=False)
class NodeOperationError(NodeError):
    """Raised when a node's own operation fails.

    Attributes:
        node_type: Type name of the node
        node_id: ID of the failing node
        message: Error message
        code: Machine-readable code (e.g. ``REQUEST_ERROR``)
        details: Additional error context
    """

    node_type: str
    node_id: str
    message: str
    code: str = "EXECUTION_ERROR"
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        Exception.__init__(self, str(self))

    def __str__(self) -> str:
        return f"{self.node_type} ({self.node_id}) failed [{self.code}]: {self.message}"


__all__ = [
    "NodeConfigurationError",
    "NodeError",
    "NodeNotRegisteredError",
    "NodeOperationError",
]
