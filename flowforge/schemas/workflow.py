"""Workflow definition schemas.

A workflow definition is the immutable input to a run:

    { "id": "wf-1",
      "nodes": [ {"id": "1", "type": "ManualTrigger", "config": {}} ],
      "connections": [ {"source": "1", "sourcePort": "output",
                        "target": "2", "targetPort": "input"} ] }

Structural invariants (known endpoints, acyclicity) are checked by
WorkflowValidator so that every problem is reported at once; these models
only enforce field types.
"""

from __future__ import annotations

from typing import Any
from uuid import uuid4

from pydantic import Field

from flowforge.schemas.base import BaseSchema


class WorkflowNode(BaseSchema):
    """A node placed in a workflow graph.

    Attributes:
        id: Unique node id within the workflow.
        type: Node type name, resolved through the NodeCatalog.
        config: Opaque node configuration handed to the node factory.
    """

    id: str = Field(..., min_length=1, description="Unique node id")
    type: str = Field(..., min_length=1, description="Node type name")
    config: dict[str, Any] = Field(
        default_factory=dict,
        description="Node configuration (JSON)",
        examples=[{"condition": "equals", "field": "status", "value": "ok"}],
    )


class Connection(BaseSchema):
    """Directed edge from an output port to an input port."""

    source: str = Field(..., description="Source node id")
    source_port: str = Field(default="output", alias="sourcePort")
    target: str = Field(..., description="Target node id")
    target_port: str = Field(default="input", alias="targetPort")

    def __str__(self) -> str:
        return f"{self.source}.{self.source_port} -> {self.target}.{self.target_port}"


class WorkflowDefinition(BaseSchema):
    """A complete workflow graph.

    Example:
        >>> workflow = WorkflowDefinition.model_validate({
        ...     "id": "wf-1",
        ...     "nodes": [{"id": "1", "type": "ManualTrigger"}],
        ...     "connections": [],
        ... })
        >>> workflow.get_node("1").type
        'ManualTrigger'
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str | None = None
    nodes: list[WorkflowNode] = Field(default_factory=list)
    connections: list[Connection] = Field(default_factory=list)

    def node_ids(self) -> list[str]:
        """Node ids in definition order."""
        return [node.id for node in self.nodes]

    def get_node(self, node_id: str) -> WorkflowNode | None:
        """Find a node definition by id."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def incoming_connections(self, node_id: str) -> list[Connection]:
        """Connections targeting ``node_id``, in declaration order."""
        return [c for c in self.connections if c.target == node_id]

    def outgoing_connections(self, node_id: str) -> list[Connection]:
        """Connections leaving ``node_id``, in declaration order."""
        return [c for c in self.connections if c.source == node_id]
