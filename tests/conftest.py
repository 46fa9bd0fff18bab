"""pytest configuration and shared fixtures.

Provides a node catalog with the built-in node types plus a set of small
test node types, an engine wired to that catalog, and helpers for building
workflow definitions and per-run contexts.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, ClassVar

import pytest

from flowforge.models.enums import NodeCategory
from flowforge.schemas.execution import ExecutionOptions
from flowforge.schemas.workflow import WorkflowDefinition
from flowforge.services.workflow.context import ExecutionContext, NodeExecutionContext
from flowforge.services.workflow.engine import WorkflowEngine
from flowforge.services.workflow.events import EventBus
from flowforge.services.workflow.nodes.base import BaseNode, PortDefinition
from flowforge.services.workflow.nodes.registry import NodeCatalog

# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


# =============================================================================
# TEST NODE TYPES
# =============================================================================


class EchoNode(BaseNode):
    """Emits its resolved input on ``output``."""

    node_type = "Echo"
    category = NodeCategory.ACTION

    async def execute(self, context):
        return {"output": context.get_input_data()}


class PortsNode(BaseNode):
    """Emits its input on every port listed in ``config["emit"]``."""

    node_type = "Ports"
    category = NodeCategory.LOGIC
    outputs = (PortDefinition(name="true"), PortDefinition(name="false"))

    async def execute(self, context):
        data = context.get_input_data()
        return {port: data for port in self.get_property("emit", [])}


class FailingNode(BaseNode):
    """Raises RuntimeError with ``config["message"]``."""

    node_type = "Fail"
    category = NodeCategory.ACTION

    async def execute(self, context):
        raise RuntimeError(self.get_property("message", "boom"))


class FailingTriggerNode(FailingNode):
    node_type = "FailTrigger"
    category = NodeCategory.TRIGGER
    inputs = ()


class SlowNode(BaseNode):
    """Sleeps ``config["seconds"]`` then echoes its input."""

    node_type = "Slow"
    category = NodeCategory.ACTION

    async def execute(self, context):
        await asyncio.sleep(self.get_property("seconds", 0.1))
        return {"output": context.get_input_data()}


class NoneResultNode(BaseNode):
    node_type = "NoneResult"
    category = NodeCategory.ACTION

    async def execute(self, context):
        return None


class BadResultNode(BaseNode):
    node_type = "BadResult"
    category = NodeCategory.ACTION

    async def execute(self, context):
        return "not a mapping"


class LifecycleNode(BaseNode):
    """Records initialize/execute/cleanup calls in ``events``."""

    node_type = "Lifecycle"
    category = NodeCategory.UTILITY
    events: ClassVar[list[tuple[str, str]]] = []

    async def initialize(self):
        self.events.append(("initialize", self.id))

    async def execute(self, context):
        self.events.append(("execute", self.id))
        return {"output": context.get_input_data()}

    async def cleanup(self):
        self.events.append(("cleanup", self.id))


class SlowInitLifecycleNode(LifecycleNode):
    """LifecycleNode whose initialize() sleeps ``config["seconds"]`` first."""

    node_type = "SlowInitLifecycle"

    async def initialize(self):
        await asyncio.sleep(self.get_property("seconds", 0.05))
        await super().initialize()


class BrokenInitNode(BaseNode):
    node_type = "BrokenInit"
    category = NodeCategory.UTILITY

    async def initialize(self):
        raise ConnectionError("cannot reach backend")

    async def execute(self, context):
        return {}


class BrokenCleanupNode(EchoNode):
    node_type = "BrokenCleanup"

    async def cleanup(self):
        raise OSError("handle already closed")


TEST_NODE_TYPES: tuple[type[BaseNode], ...] = (
    EchoNode,
    PortsNode,
    FailingNode,
    FailingTriggerNode,
    SlowNode,
    NoneResultNode,
    BadResultNode,
    LifecycleNode,
    SlowInitLifecycleNode,
    BrokenInitNode,
    BrokenCleanupNode,
)


# =============================================================================
# WORKFLOW BUILDERS
# =============================================================================


def build_workflow(
    nodes: list[tuple],
    connections: list[tuple] = (),
    workflow_id: str = "wf-test",
) -> dict[str, Any]:
    """Build a workflow definition mapping.

    Args:
        nodes: ``(id, type)`` or ``(id, type, config)`` tuples.
        connections: ``(source, target)`` or
            ``(source, target, source_port, target_port)`` tuples.
        workflow_id: Workflow id.

    Example:
        build_workflow(
            [("1", "ManualTrigger"), ("2", "Echo")],
            [("1", "2")],
        )
    """
    node_list = []
    for node in nodes:
        node_id, node_type, *rest = node
        node_list.append({"id": node_id, "type": node_type, "config": rest[0] if rest else {}})

    connection_list = []
    for connection in connections:
        source, target, *ports = connection
        entry = {"source": source, "target": target}
        if ports:
            entry["sourcePort"] = ports[0]
            entry["targetPort"] = ports[1] if len(ports) > 1 else "input"
        connection_list.append(entry)

    return {"id": workflow_id, "name": "Test workflow", "nodes": node_list, "connections": connection_list}


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def catalog() -> NodeCatalog:
    """Catalog with the built-in node types and the test node types."""
    node_catalog = NodeCatalog()
    for node_class in TEST_NODE_TYPES:
        node_catalog.register(node_class.node_type, node_class)
    return node_catalog


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus(max_history=500)


@pytest.fixture
def engine(catalog: NodeCatalog, event_bus: EventBus) -> WorkflowEngine:
    """Engine wired to the test catalog and a private event bus."""
    return WorkflowEngine(catalog=catalog, event_bus=event_bus, history_size=50)


@pytest.fixture
def workflow_factory() -> Callable[..., dict[str, Any]]:
    return build_workflow


@pytest.fixture
def lifecycle_events() -> list[tuple[str, str]]:
    """The LifecycleNode call log, emptied for the test."""
    LifecycleNode.events.clear()
    yield LifecycleNode.events
    LifecycleNode.events.clear()


@pytest.fixture
def prepare_run(
    engine: WorkflowEngine,
) -> Callable[..., Awaitable[tuple[ExecutionContext, WorkflowDefinition]]]:
    """Build an ExecutionContext with initialized nodes for a workflow mapping.

    Example:
        context, definition = await prepare_run(workflow, max_node_executions=2)
    """

    async def _prepare(
        workflow: dict[str, Any], **options: Any
    ) -> tuple[ExecutionContext, WorkflowDefinition]:
        definition = WorkflowDefinition.model_validate(workflow)
        context = ExecutionContext(definition.id, ExecutionOptions(**options))
        await engine.initialize_nodes(context, definition)
        return context, definition

    return _prepare


@pytest.fixture
def node_context() -> Callable[..., NodeExecutionContext]:
    """Build a NodeExecutionContext for calling a node's execute() directly.

    The node sits alone in a one-node workflow, so get_input_data() resolves
    straight from ``input_data``.

    Example:
        context = node_context({"status": "ok"})
        result = await IfElseNode({"field": "status"}, node_id="n1").execute(context)
    """

    def _make(
        input_data: Any = None,
        node_id: str = "n1",
        run: ExecutionContext | None = None,
    ) -> NodeExecutionContext:
        definition = WorkflowDefinition.model_validate(
            {"id": "wf-node", "nodes": [{"id": node_id, "type": "Echo"}], "connections": []}
        )
        return NodeExecutionContext(run or ExecutionContext("wf-node"), definition, node_id, input_data)

    return _make
