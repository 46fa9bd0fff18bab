"""Base Node Abstract Class.

Every node type the engine can run derives from BaseNode. The engine only
relies on the lifecycle hooks (initialize, execute, cleanup) and on the
class-level metadata (category, ports) exposed through NodeMetadata.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from flowforge.core.logging import get_logger
from flowforge.models.enums import NodeCategory
from flowforge.schemas.base import SnapshotSchema
from flowforge.services.workflow.nodes.errors import NodeConfigurationError

if TYPE_CHECKING:
    from flowforge.services.workflow.context import NodeExecutionContext


class PortDefinition(SnapshotSchema):
    """A named input or output port on a node type."""

    name: str
    type: str = "any"
    required: bool = False
    description: str = ""


class NodeMetadata(SnapshotSchema):
    """Catalog entry describing a node type.

    Attributes:
        node_type: Type name used in workflow definitions.
        category: Node category; "trigger" nodes seed a run.
        description: Human-readable description.
        inputs: Input port definitions.
        outputs: Output port definitions.
        properties: JSON schema of the node configuration, if declared.
    """

    node_type: str
    category: NodeCategory
    description: str = ""
    inputs: list[PortDefinition] = Field(default_factory=list)
    outputs: list[PortDefinition] = Field(default_factory=list)
    properties: dict[str, Any] = Field(default_factory=dict)


class NodeProperties(BaseModel):
    """Base for node configuration schemas.

    Configs come from the editor with camelCase keys; fields declare them as
    aliases. Unknown keys (``name``, editor layout data) are ignored.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


def resolve_path(data: Any, path: str) -> Any:
    """Read a dot-notation path (``user.address.city``) out of nested data.

    List segments may be numeric indexes. Returns None when any segment is
    missing. An empty path returns ``data`` itself.
    """
    if not path:
        return data

    value = data
    for part in path.split("."):
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get(part)
        elif isinstance(value, list) and part.lstrip("-").isdigit():
            index = int(part)
            value = value[index] if -len(value) <= index < len(value) else None
        else:
            return None
    return value


class BaseNode(ABC):
    """Abstract base class for all workflow nodes.

    Subclasses declare their metadata as class attributes and implement
    execute(). Configuration is validated against ``properties_schema`` when
    the node is constructed, so a bad config fails at run initialization
    rather than mid-walk.

    Example:
        >>> class Echo(BaseNode):
        ...     node_type = "Echo"
        ...     async def execute(self, context):
        ...         return {"output": context.get_input_data()}
    """

    node_type: ClassVar[str] = ""
    category: ClassVar[NodeCategory] = NodeCategory.UTILITY
    description: ClassVar[str] = "Base automation node"
    inputs: ClassVar[tuple[PortDefinition, ...]] = (PortDefinition(name="input"),)
    outputs: ClassVar[tuple[PortDefinition, ...]] = (PortDefinition(name="output"),)
    properties_schema: ClassVar[type[NodeProperties] | None] = None

    def __init__(self, config: dict[str, Any] | None = None, node_id: str | None = None):
        """Initialize node.

        Args:
            config: Node configuration from the workflow definition.
            node_id: Definition id; a uuid is generated when omitted.

        Raises:
            NodeConfigurationError: If config fails ``properties_schema``.
        """
        self.config: dict[str, Any] = dict(config or {})
        self.id: str = node_id or str(self.config.get("id") or uuid4())
        self.name: str = self.config.get("name") or self.node_type or type(self).__name__
        self.properties = self._validate_properties()
        self.logger = get_logger(f"flowforge.nodes.{self.node_type or type(self).__name__}")

    @classmethod
    def metadata(cls) -> NodeMetadata:
        """Describe this node type for the catalog."""
        schema = cls.properties_schema.model_json_schema(by_alias=True) if cls.properties_schema else {}
        return NodeMetadata(
            node_type=cls.node_type,
            category=cls.category,
            description=cls.description,
            inputs=list(cls.inputs),
            outputs=list(cls.outputs),
            properties=schema,
        )

    def _validate_properties(self) -> NodeProperties | None:
        if self.properties_schema is None:
            return None
        try:
            return self.properties_schema.model_validate(self.config)
        except ValidationError as e:
            error_dicts = [
                {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                for err in e.errors()
            ]
            raise NodeConfigurationError(
                node_type=self.node_type,
                message="; ".join(
                    f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                    for err in error_dicts
                ),
                errors=error_dicts,
            ) from e

    def get_property(self, key: str, default: Any = None) -> Any:
        """Read a raw config value, falling back to ``default`` when unset or None."""
        value = self.config.get(key)
        return default if value is None else value

    # Lifecycle hooks

    async def initialize(self) -> None:
        """Acquire resources before the first dispatch. No-op by default."""

    @abstractmethod
    async def execute(self, context: NodeExecutionContext) -> dict[str, Any] | None:
        """Run the node once.

        Args:
            context: Dispatch-scoped view of the run.

        Returns:
            Output map keyed by output port name. Only ports present in the
            map propagate downstream.
        """

    async def cleanup(self) -> None:
        """Release resources at run end. No-op by default."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, type={self.node_type!r})"


__all__ = [
    "BaseNode",
    "NodeMetadata",
    "NodeProperties",
    "PortDefinition",
    "resolve_path",
]
