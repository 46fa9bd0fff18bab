"""Workflow node types and the node catalog.

Built-in node types:
- ManualTrigger: Seeds a run with the caller's trigger input
- ConsoleOutput: Writes its input to the run log and passes it through
- SetVariable: Sets and manipulates run variables
- IfElse: Conditional branching on ``true`` / ``false`` ports
- HttpRequest: Sends HTTP requests with httpx
"""

from flowforge.services.workflow.nodes.base import (
    BaseNode,
    NodeMetadata,
    NodeProperties,
    PortDefinition,
    resolve_path,
)
from flowforge.services.workflow.nodes.console_output import ConsoleOutputNode
from flowforge.services.workflow.nodes.errors import (
    NodeConfigurationError,
    NodeError,
    NodeNotRegisteredError,
    NodeOperationError,
)
from flowforge.services.workflow.nodes.http_request import HttpRequestNode
from flowforge.services.workflow.nodes.if_else import IfElseNode
from flowforge.services.workflow.nodes.manual_trigger import ManualTriggerNode
from flowforge.services.workflow.nodes.registry import NodeCatalog, get_catalog
from flowforge.services.workflow.nodes.set_variable import SetVariableNode

__all__ = [
    "BaseNode",
    "ConsoleOutputNode",
    "HttpRequestNode",
    "IfElseNode",
    "ManualTriggerNode",
    "NodeCatalog",
    "NodeConfigurationError",
    "NodeError",
    "NodeMetadata",
    "NodeNotRegisteredError",
    "NodeOperationError",
    "NodeProperties",
    "PortDefinition",
    "SetVariableNode",
    "get_catalog",
    "resolve_path",
]
